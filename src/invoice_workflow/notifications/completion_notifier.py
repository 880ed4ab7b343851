"""Completion notices for jobs that arrived by email.

When a job was created from an inbound email, completing it replies to
the sender with the extracted CSV attached. Every attempt, sent or
failed, is recorded in the inbox. Failures are logged and never raised:
a lost notice must not undo a completed job.
"""

import base64
import logging
import time
from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..config import Config
from ..exceptions import NotificationError
from ..output import ExportedCSV
from .email_sender import EmailAttachment, EmailMessage, EmailSender

if TYPE_CHECKING:
    from ..database import InboxRepository

__all__ = ["CompletionNotifier", "build_completion_message"]

logger = logging.getLogger(__name__)

BODY_TEMPLATE = """Hello {name},

Your invoice has been successfully processed.

Job Details:
- Job Title: {title}
- Processing Date: {processed_on}

Please find the extracted data attached as a CSV file.

If you have any questions about the extracted data or need any modifications, please don't hesitate to contact us.

Cheers,
Clear.ai"""


def build_completion_message(job_id: int, job_title: str, csv: ExportedCSV,
                             to_address: str, from_address: str,
                             recipient_name: Optional[str] = None,
                             original_subject: Optional[str] = None,
                             processed_on: Optional[date] = None) -> EmailMessage:
    suffix = str(job_id)[-6:]
    content = csv.data
    return EmailMessage(
        from_address=from_address,
        to_address=to_address,
        subject=f"Re: {original_subject}" if original_subject else "Invoice Processing Complete",
        text_body=BODY_TEMPLATE.format(
            name=recipient_name or "there",
            title=job_title,
            processed_on=(processed_on or date.today()).isoformat(),
        ),
        attachments=[EmailAttachment(
            name=f"invoice_data_{suffix}.csv",
            content_base64=base64.b64encode(content).decode("ascii"),
            content_type="text/csv",
            content_length=len(content),
            content_id=f"invoice-{suffix}",
        )],
    )


class CompletionNotifier:
    """Replies to the originating email of a completed job.

    Attributes:
        inbox: Inbox repository used to find the linked email and track sends
        sender: Email transport
        from_address: Sender address for notices
    """

    def __init__(self, inbox: "InboxRepository", sender: EmailSender,
                 from_address: str = Config.POSTMARK_FROM_EMAIL) -> None:
        self.inbox = inbox
        self.sender = sender
        self.from_address = from_address

    def notify_if_linked(self, job_id: int, job_title: str, csv: ExportedCSV,
                         csv_storage_id: Optional[str] = None) -> bool:
        """Send the completion notice if the job came from an email.

        Never raises: any failure while looking up the email, building the
        notice or sending it is logged and tracked as a failed send.

        Returns:
            True if a notice was sent, False if there was nothing to send or
            sending failed
        """
        message: Optional[EmailMessage] = None
        attachments: List[Dict[str, Any]] = []
        try:
            linked = self.inbox.find_linked_email(job_id)
            if linked is None:
                return False

            message = build_completion_message(
                job_id, job_title, csv,
                to_address=linked.from_address,
                from_address=self.from_address,
                recipient_name=linked.from_name,
                original_subject=linked.subject,
            )
            attachments = [
                {"name": a.name, "contentType": a.content_type,
                 "contentLength": a.content_length, "storageId": csv_storage_id}
                for a in message.attachments
            ]
            message_id = self.sender.send(message)
        except Exception as e:
            logger.error("Failed to send completion email for job %s: %s", job_id, e,
                         exc_info=not isinstance(e, NotificationError))
            if message is not None:
                self._track(job_id, message,
                            f"failed-{int(time.time() * 1000)}-{str(job_id)[-6:]}",
                            "failed", attachments, str(e))
            return False

        logger.info("Completion email for job %s sent to %s", job_id, message.to_address)
        self._track(job_id, message, message_id or f"{self.sender.service_name}-{job_id}",
                    "sent", attachments, None)
        return True

    def _track(self, job_id: int, message: EmailMessage, message_id: str, status: str,
               attachments: List[Dict[str, Any]], error_message: Optional[str]) -> None:
        try:
            self.inbox.record_outbound(
                from_address=message.from_address,
                to_address=message.to_address,
                message_id=message_id,
                status=status,
                subject=message.subject,
                text_body=message.text_body,
                job_id=job_id,
                attachments=attachments,
                error_message=error_message,
            )
        except Exception as e:
            logger.error("Failed to track %s email for job %s: %s", status, job_id, e)
