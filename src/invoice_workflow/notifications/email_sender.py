"""Email delivery implementations.

Postmark is used through its HTTP API with ``requests``. ``NullEmailSender``
stands in when no server token is configured.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from ..config import Config
from ..exceptions import NotificationError

__all__ = ["EmailAttachment", "EmailMessage", "EmailSender", "PostmarkEmailSender", "NullEmailSender"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailAttachment:
    name: str
    content_base64: str
    content_type: str
    content_length: int
    content_id: Optional[str] = None


@dataclass(frozen=True)
class EmailMessage:
    from_address: str
    to_address: str
    subject: str
    text_body: str
    attachments: List[EmailAttachment] = field(default_factory=list)


class EmailSender(ABC):
    """Sends a message and returns the provider's message id."""

    service_name: str = "unknown"

    @abstractmethod
    def send(self, message: EmailMessage) -> Optional[str]:
        """Send ``message``.

        Raises:
            NotificationError: If the provider rejects the message or is unreachable
        """


class PostmarkEmailSender(EmailSender):
    """Postmark-backed sender using the ``/email`` endpoint."""

    service_name = "postmark"

    def __init__(self, server_token: str, api_url: str = Config.POSTMARK_API_URL,
                 timeout: int = Config.EMAIL_TIMEOUT,
                 session: Optional[requests.Session] = None) -> None:
        if not server_token:
            raise NotificationError("Missing Postmark server token")
        self.server_token = server_token
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, message: EmailMessage) -> Optional[str]:
        payload: Dict[str, Any] = {
            "From": message.from_address,
            "To": message.to_address,
            "Subject": message.subject,
            "TextBody": message.text_body,
            "Attachments": [
                {
                    "Name": a.name,
                    "Content": a.content_base64,
                    "ContentType": a.content_type,
                    **({"ContentID": a.content_id} if a.content_id else {}),
                }
                for a in message.attachments
            ],
        }
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Postmark-Server-Token": self.server_token,
        }

        try:
            response = self.session.post(self.api_url, json=payload, headers=headers,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(f"Postmark request failed: {str(e)}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or body.get("ErrorCode", 0) != 0:
            detail = body.get("Message") or response.text
            logger.error("Postmark rejected email to %s: status=%s %s",
                         message.to_address, response.status_code, detail)
            raise NotificationError(f"Postmark error {response.status_code}: {detail}")

        return body.get("MessageID")


class NullEmailSender(EmailSender):
    """No-op sender used when email notifications are disabled."""

    service_name = "disabled"

    def send(self, message: EmailMessage) -> Optional[str]:
        logger.debug("Email notifications disabled; dropping email to=%s subject=%s",
                     message.to_address, message.subject)
        return None
