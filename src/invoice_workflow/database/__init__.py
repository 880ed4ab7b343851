"""Database module for the invoice workflow application.

This module contains database management classes including connection
management, session creation, and repository patterns for jobs,
templates, settings, users and the email inbox.
"""

from .database_manager import DatabaseManager
from .inbox_repository import InboxRepository
from .job_repository import AvailableJob, JobDetails, JobRepository
from .settings_repository import SettingsRepository
from .template_repository import SearchHit, TemplateRepository
from .user_repository import UserRepository

__all__ = [
    "DatabaseManager",
    "JobRepository",
    "JobDetails",
    "AvailableJob",
    "TemplateRepository",
    "SearchHit",
    "SettingsRepository",
    "InboxRepository",
    "UserRepository",
]
