"""Key/value settings store backing ``SystemConfig``."""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError
from ..models import SystemSetting
from .database_manager import DatabaseManager

__all__ = ["SettingsRepository"]


class SettingsRepository:
    """Repository for global system settings."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.db_manager: DatabaseManager = db_manager

    def all_values(self) -> Dict[str, Any]:
        """Return every stored setting as ``{key: value}``."""
        session: Session = self.db_manager.create_session()
        try:
            rows = session.execute(select(SystemSetting.key, SystemSetting.value)).all()
            return {key: value for key, value in rows}
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def upsert(self, key: str, value: Any, description: str,
               updated_by: Optional[int] = None) -> None:
        """Insert or overwrite a setting."""
        session: Session = self.db_manager.create_session()
        try:
            setting = session.execute(
                select(SystemSetting).where(SystemSetting.key == key)
            ).scalar_one_or_none()
            if setting is None:
                session.add(SystemSetting(key=key, value=value, description=description,
                                          updated_by=updated_by))
            else:
                setting.value = value
                setting.description = description
                setting.updated_by = updated_by
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()
