"""Utility helpers: logging setup and retry with backoff."""

from .logger import setup_logger
from .retry import backoff_delays, retry_async, retry_call

__all__ = ["setup_logger", "backoff_delays", "retry_call", "retry_async"]
