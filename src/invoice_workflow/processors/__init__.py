"""Processors module for the invoice workflow application.

This module contains job intake, the job completion service and the
unattended auto-processing pipeline.
"""

from .auto_processor import AutoProcessingOrchestrator, AutoProcessingResult, ProcessingAction
from .completion_service import CompletionResult, JobCompletionService
from .job_intake import InboundEmail, IntakeResult, JobIntakeService, UploadedDocument

__all__ = [
    "JobIntakeService",
    "InboundEmail",
    "IntakeResult",
    "UploadedDocument",
    "JobCompletionService",
    "CompletionResult",
    "AutoProcessingOrchestrator",
    "AutoProcessingResult",
    "ProcessingAction",
]
