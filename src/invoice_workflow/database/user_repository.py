"""Client and user records."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError, ValidationError
from ..models import Client, User, UserRole
from .database_manager import DatabaseManager

__all__ = ["UserRepository"]


class UserRepository:
    """Repository for clients and users."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.db_manager: DatabaseManager = db_manager

    def create_client(self, name: str) -> int:
        session: Session = self.db_manager.create_session()
        try:
            client = Client(name=name)
            session.add(client)
            session.commit()
            return client.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def create_user(self, name: str, email: str, role: UserRole,
                    client_id: Optional[int] = None) -> int:
        try:
            role = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role!r}")
        session: Session = self.db_manager.create_session()
        try:
            user = User(name=name, email=email, role=role.value, client_id=client_id)
            session.add(user)
            session.commit()
            return user.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def get_user(self, user_id: int) -> Optional[User]:
        session: Session = self.db_manager.create_session()
        try:
            return session.get(User, user_id)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def find_by_email(self, email: str) -> Optional[User]:
        """Return the user with ``email`` (case-insensitive), if any."""
        session: Session = self.db_manager.create_session()
        try:
            return session.execute(
                select(User).where(func.lower(User.email) == email.strip().lower())
                .order_by(User.id)
            ).scalars().first()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()
