"""Configuration module for the invoice workflow application.

This module contains static configuration parameters including model
settings, matching thresholds, retry budgets, file size limits and
deployment settings read from the environment, plus the runtime
``SystemConfig`` value object backed by the settings store.
"""

import os
from typing import Tuple

from .system_config import ProcessingMode, SystemConfig

__all__ = ["Config", "SystemConfig", "ProcessingMode"]


class Config:
    """Configuration class containing application settings and constants.

    This class centralizes model settings, the template matching and
    automation thresholds, retry budgets, document limits and the
    environment-driven deployment values.
    """

    # OpenAI model configuration
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_DIMENSIONS: int = 1536

    # Template matching
    TEMPLATE_MATCH_MIN_SCORE: float = 0.80
    TEMPLATE_MATCH_LIMIT: int = 10

    # Unattended automation requires a stricter match than suggestion does
    AUTO_PROCESS_MIN_SCORE: float = 0.95

    # Retry budgets (delays double per attempt: 2s then 4s)
    ORACLE_MAX_ATTEMPTS: int = 3
    ORACLE_BASE_DELAY: float = 2.0
    JOB_FETCH_ATTEMPTS: int = 3
    JOB_FETCH_BASE_DELAY: float = 2.0

    # Document limits
    MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50MB maximum file size
    MIN_FILE_SIZE: int = 100  # 100 bytes minimum file size
    ALLOWED_EXTENSIONS: Tuple[str, ...] = (".pdf", ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")
    IMAGE_EXTENSIONS: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")
    MAX_DOCUMENT_CHARS: int = 20_000
    DOWNLOAD_TIMEOUT: int = 60

    # Persistence and storage
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///invoice_workflow.db")
    STORAGE_DIR: str = os.getenv("STORAGE_DIR", "storage")

    # Completion notifications
    POSTMARK_SERVER_TOKEN: str = os.getenv("POSTMARK_SERVER_TOKEN", "")
    POSTMARK_FROM_EMAIL: str = os.getenv("POSTMARK_FROM_EMAIL", "noreply@compileflow.com")
    POSTMARK_API_URL: str = "https://api.postmarkapp.com/email"
    EMAIL_TIMEOUT: int = 30

    # Where the compiler workbench goes once a job is completed
    COMPLETION_REDIRECT_PATH: str = "/dashboard"
    COMPLETION_REDIRECT_DELAY: float = 2.0
