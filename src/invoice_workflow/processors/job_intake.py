"""Job intake for the invoice workflow application.

This module contains the JobIntakeService class, which turns uploaded
documents into a new RECEIVED job. Jobs arrive either from a client
submitting files directly or from an inbound email whose attachments are
stored, recorded in the inbox and linked to the job they create.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..database import InboxRepository, JobRepository, UserRepository
from ..exceptions import StorageError, ValidationError
from ..models import UserRole
from ..storage import BlobStorage
from ..validators import DocumentValidator

__all__ = [
    "JobIntakeService",
    "UploadedDocument",
    "InboundEmail",
    "IntakeResult",
    "JOB_TYPES",
]

logger = logging.getLogger(__name__)

# job type is read from the mailbox hash of the receiving address
JOB_TYPES = ("INVOICE", "SHIPMENT", "N10")
AUTO_PROCESSED_TYPES = ("INVOICE",)
EMAIL_DEADLINE_HOURS = 24


@dataclass(frozen=True)
class UploadedDocument:
    file_name: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class InboundEmail:
    """An inbound email as delivered by the mail provider's webhook.

    Attributes:
        from_address: Sender address
        to_address: Receiving address
        message_id: Provider message id, used to deduplicate deliveries
        mailbox_hash: Part of the receiving address after ``+``; names the job type
        subject: Email subject
        text_body: Plain-text body
        from_name: Display name of the sender
        attachments: Decoded attachments
    """
    from_address: str
    to_address: str
    message_id: str
    mailbox_hash: str = ""
    subject: Optional[str] = None
    text_body: Optional[str] = None
    from_name: Optional[str] = None
    attachments: List[UploadedDocument] = field(default_factory=list)

    @classmethod
    def from_postmark(cls, payload: Dict[str, Any]) -> "InboundEmail":
        """Build from a Postmark inbound webhook payload.

        Raises:
            ValidationError: If the payload has no recipient or an
                attachment is not valid base64
        """
        recipients = payload.get("ToFull") or []
        if not recipients:
            raise ValidationError("No recipient found")

        attachments: List[UploadedDocument] = []
        for item in payload.get("Attachments") or []:
            try:
                content = base64.b64decode(item.get("Content") or "", validate=True)
            except (binascii.Error, ValueError):
                raise ValidationError(f"Attachment {item.get('Name')!r} is not valid base64")
            attachments.append(UploadedDocument(
                file_name=item.get("Name") or "attachment",
                content=content,
                content_type=item.get("ContentType") or "application/octet-stream",
            ))

        return cls(
            from_address=payload.get("From") or "",
            to_address=payload.get("To") or "",
            message_id=payload.get("MessageID") or "",
            mailbox_hash=recipients[0].get("MailboxHash") or "",
            subject=payload.get("Subject"),
            text_body=payload.get("TextBody"),
            from_name=payload.get("FromName"),
            attachments=attachments,
        )


@dataclass(frozen=True)
class IntakeResult:
    """A job created from an inbound email."""
    job_id: int
    job_type: str
    email_id: int
    client_id: int
    attachment_count: int

    @property
    def auto_process(self) -> bool:
        return self.job_type in AUTO_PROCESSED_TYPES


class JobIntakeService:
    """Stores documents and creates jobs from them.

    Attributes:
        job_repository: Job persistence backend
        storage: Blob storage for the job documents
        inbox: Inbox repository for inbound email records
        users: User repository used to find or create the sender's client
    """

    def __init__(self, job_repository: JobRepository, storage: BlobStorage,
                 inbox: InboxRepository, users: UserRepository) -> None:
        self.job_repository = job_repository
        self.storage = storage
        self.inbox = inbox
        self.users = users

    def create_job(self, title: str, client_id: int, documents: Sequence[UploadedDocument],
                   total_price: int = 0, deadline_hours: float = 24) -> int:
        """Store the documents and create a RECEIVED job for them.

        Args:
            title: Job title
            client_id: Owning client id
            documents: Files to process; every one must be a valid document
            total_price: Price in cents
            deadline_hours: Hours until the deadline

        Returns:
            Database ID of the created job

        Raises:
            ValidationError: If the title is blank, there are no documents
                or a document is invalid
            StorageError: If a document cannot be stored
        """
        if not title or not title.strip():
            raise ValidationError("Job title is required")
        if not documents:
            raise ValidationError("At least one file is required")
        if deadline_hours <= 0:
            raise ValidationError("Deadline must be in the future")

        for document in documents:
            DocumentValidator.validate_document(document.content, document.file_name)
        files = [self._store(document) for document in documents]
        return self.job_repository.create_job(title.strip(), client_id, total_price,
                                              deadline_hours, files=files)

    def ingest_email(self, email: InboundEmail) -> IntakeResult:
        """Create a job from an inbound email and link the email to it.

        Attachments that are invalid or cannot be stored are skipped; the
        job is created as long as at least one was stored.

        Raises:
            ValidationError: If the mailbox hash names no job type, the
                email has no usable attachments or the sender has no client
        """
        job_type = self._job_type(email.mailbox_hash)
        if not email.attachments:
            raise ValidationError("No attachments found")

        client_id = self._sender_client(email)

        files: List[Dict[str, Any]] = []
        for attachment in email.attachments:
            try:
                DocumentValidator.validate_document(attachment.content, attachment.file_name)
                files.append(self._store(attachment))
            except (ValidationError, StorageError) as e:
                logger.warning("Skipping attachment %r from %s: %s",
                               attachment.file_name, email.from_address, e)
        if not files:
            raise ValidationError("No attachments could be stored")

        email_id = self.inbox.record_inbound(
            from_address=email.from_address,
            to_address=email.to_address,
            message_id=email.message_id,
            subject=email.subject,
            text_body=email.text_body,
            from_name=email.from_name,
            attachments=[
                {"name": f["fileName"], "contentType": f["fileType"],
                 "contentLength": f["fileSize"], "storageId": f["fileStorageId"]}
                for f in files
            ],
        )

        title = f"Email {job_type} - {email.subject or 'No Subject'}"
        job_id = self.job_repository.create_job(title, client_id, 0, EMAIL_DEADLINE_HOURS,
                                                files=files)
        self.inbox.link_job(email_id, job_id)
        logger.info("Created %s job %s from email %s (%d attachment(s))",
                    job_type, job_id, email.message_id, len(files))
        return IntakeResult(job_id=job_id, job_type=job_type, email_id=email_id,
                            client_id=client_id, attachment_count=len(files))

    def _store(self, document: UploadedDocument) -> Dict[str, Any]:
        storage_id = self.storage.upload(self.storage.generate_upload_url(),
                                         document.content, document.content_type)
        return {
            "fileName": document.file_name,
            "fileStorageId": storage_id,
            "fileSize": len(document.content),
            "fileType": document.content_type,
        }

    @staticmethod
    def _job_type(mailbox_hash: str) -> str:
        lowered = (mailbox_hash or "").lower()
        for job_type in JOB_TYPES:
            if job_type.lower() in lowered:
                return job_type
        raise ValidationError(f"No job type in mailbox hash: {mailbox_hash!r}")

    def _sender_client(self, email: InboundEmail) -> int:
        if not email.from_address:
            raise ValidationError("Email has no sender")
        user = self.users.find_by_email(email.from_address)
        if user is None:
            name = email.from_name or email.from_address
            client_id = self.users.create_client(name)
            self.users.create_user(name, email.from_address, UserRole.CLIENT, client_id)
            logger.info("Created client %s for sender %s", client_id, email.from_address)
            return client_id
        if user.client_id is None:
            raise ValidationError(f"Sender {email.from_address} does not belong to a client")
        return user.client_id
