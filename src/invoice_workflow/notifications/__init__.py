"""Notifications: email transports and job completion notices."""

from .completion_notifier import CompletionNotifier, build_completion_message
from .email_sender import (
    EmailAttachment,
    EmailMessage,
    EmailSender,
    NullEmailSender,
    PostmarkEmailSender,
)

__all__ = [
    "EmailAttachment",
    "EmailMessage",
    "EmailSender",
    "PostmarkEmailSender",
    "NullEmailSender",
    "CompletionNotifier",
    "build_completion_message",
]
