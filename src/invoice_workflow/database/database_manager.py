"""Database manager for the invoice workflow application.

This module contains the DatabaseManager class for handling database
connections, session creation, and schema initialization.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Config
from ..exceptions import DatabaseError
from ..models import Base

__all__ = ["DatabaseManager"]

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and session creation.

    The engine is created lazily on first use and the schema is created
    at the same time. SQLite URLs get a shared static pool so in-memory
    databases survive across sessions.

    Attributes:
        database_url: SQLAlchemy database URL
        _engine: Cached SQLAlchemy engine instance
        _session_factory: Cached sessionmaker factory
    """

    def __init__(self, database_url: str = Config.DATABASE_URL) -> None:
        self.database_url: str = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        """Get or create the SQLAlchemy engine.

        Returns:
            SQLAlchemy engine instance

        Raises:
            DatabaseError: If engine creation or schema initialization fails
        """
        if self._engine is None:
            kwargs: Dict[str, Any] = {"echo": False}
            if self.database_url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False, "timeout": 20}
                kwargs["poolclass"] = StaticPool
            try:
                self._engine = create_engine(self.database_url, **kwargs)
                Base.metadata.create_all(self._engine)
            except Exception as e:
                raise DatabaseError(f"Database initialization error: {str(e)}")
            logger.debug("Database initialized at %s", self.database_url)
        return self._engine

    def create_session(self) -> Session:
        """Create a new database session.

        Loaded objects stay usable after commit so repositories can return
        them once the session is closed.
        """
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._session_factory()

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
