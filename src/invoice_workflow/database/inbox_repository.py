"""Inbox repository for the invoice workflow application.

Inbound emails may carry documents that become jobs; the email is then
linked to the job so the completion notice can be sent as a reply.
Outbound notices are recorded in the same table.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError, ValidationError
from ..models import InboxEmail
from .database_manager import DatabaseManager

__all__ = ["InboxRepository"]

logger = logging.getLogger(__name__)

INBOUND = "inbound"
OUTBOUND = "outbound"


class InboxRepository:
    """Repository for inbound and outbound email records."""

    def __init__(self, db_manager: DatabaseManager) -> None:
        self.db_manager: DatabaseManager = db_manager

    def record_inbound(self, from_address: str, to_address: str, message_id: str,
                       subject: Optional[str] = None, text_body: Optional[str] = None,
                       from_name: Optional[str] = None, job_id: Optional[int] = None,
                       attachments: Optional[List[Dict[str, Any]]] = None) -> int:
        """Store an inbound email, returning the existing id for a repeated message id."""
        session: Session = self.db_manager.create_session()
        try:
            existing = session.execute(
                select(InboxEmail)
                .where(InboxEmail.message_id == message_id)
                .where(InboxEmail.direction == INBOUND)
            ).scalars().first()
            if existing is not None:
                return existing.id

            email = InboxEmail(
                direction=INBOUND,
                from_address=from_address,
                from_name=from_name,
                to_address=to_address,
                subject=subject,
                text_body=text_body,
                message_id=message_id,
                status="unread",
                job_id=job_id,
                attachments=attachments or [],
            )
            session.add(email)
            session.commit()
            return email.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def link_job(self, email_id: int, job_id: int) -> None:
        session: Session = self.db_manager.create_session()
        try:
            email = session.get(InboxEmail, email_id)
            if email is None:
                raise ValidationError(f"Email {email_id} not found")
            email.job_id = job_id
            email.status = "processed"
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database update error: {str(e)}")
        finally:
            session.close()

    def find_linked_email(self, job_id: int) -> Optional[InboxEmail]:
        """Return the most recent inbound email that created ``job_id``, if any."""
        session: Session = self.db_manager.create_session()
        try:
            return session.execute(
                select(InboxEmail)
                .where(InboxEmail.job_id == job_id)
                .where(InboxEmail.direction == INBOUND)
                .order_by(InboxEmail.id.desc())
            ).scalars().first()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def record_outbound(self, from_address: str, to_address: str, message_id: str,
                        status: str, subject: Optional[str] = None,
                        text_body: Optional[str] = None, job_id: Optional[int] = None,
                        attachments: Optional[List[Dict[str, Any]]] = None,
                        error_message: Optional[str] = None) -> int:
        """Track a sent or failed outbound email."""
        if status not in ("sent", "failed"):
            raise ValidationError(f"Invalid outbound status: {status}")
        session: Session = self.db_manager.create_session()
        try:
            email = InboxEmail(
                direction=OUTBOUND,
                from_address=from_address,
                to_address=to_address,
                subject=subject,
                text_body=text_body,
                message_id=message_id,
                status=status,
                job_id=job_id,
                attachments=attachments or [],
                error_message=error_message,
            )
            session.add(email)
            session.commit()
            logger.debug("Recorded outbound email %s (%s) for job %s", message_id, status, job_id)
            return email.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def list_outbound(self, job_id: int) -> List[InboxEmail]:
        session: Session = self.db_manager.create_session()
        try:
            return list(session.execute(
                select(InboxEmail)
                .where(InboxEmail.job_id == job_id)
                .where(InboxEmail.direction == OUTBOUND)
                .order_by(InboxEmail.id)
            ).scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()
