"""Invoice Workflow - template matching and extraction orchestration for invoices.

This package walks client-submitted invoice jobs from upload to a CSV
deliverable, matching suppliers against saved extraction templates and
automating the jobs it is confident about.

The package is organized into the following modules:
- config: Application constants and the SystemConfig settings view
- exceptions: Custom exception classes
- models: Database tables and field schema value types
- database: Database management and repositories
- validators: Document validation utilities
- extractors: Document loading, PDF text and the OpenAI extraction oracle
- matching: Embeddings and saved template matching
- workflow: The compiler workbench state machine and its helpers
- output: CSV export
- storage: Local blob storage
- notifications: Completion emails
- processors: Job completion and unattended auto-processing
"""

__version__ = "1.0.0"
__author__ = "Invoice Workflow Team"
__description__ = "Template matching and extraction workflow for invoice jobs"

from .config import Config, ProcessingMode, SystemConfig
from .exceptions import (
    PDFProcessingError,
    DataExtractionError,
    EmbeddingError,
    DatabaseError,
    ValidationError,
    JobNotFoundError,
    AuthorizationError,
    InvalidTransitionError,
    StorageError,
    NotificationError,
)
from .models import AnalysisResult, JobStatus, SuggestedField, WorkflowStep
from .database import DatabaseManager, JobRepository, TemplateRepository
from .extractors import ExtractionOracle
from .matching import TemplateMatch, TemplateMatcher
from .workflow import JobWorkflowStateMachine, resume_step, slugify_label
from .output import CSVExporter
from .storage import BlobStorage
from .processors import AutoProcessingOrchestrator, JobCompletionService, ProcessingAction

__all__ = [
    # Configuration
    "Config",
    "SystemConfig",
    "ProcessingMode",
    # Exceptions
    "PDFProcessingError",
    "DataExtractionError",
    "EmbeddingError",
    "DatabaseError",
    "ValidationError",
    "JobNotFoundError",
    "AuthorizationError",
    "InvalidTransitionError",
    "StorageError",
    "NotificationError",
    # Models
    "AnalysisResult",
    "SuggestedField",
    "JobStatus",
    "WorkflowStep",
    # Database
    "DatabaseManager",
    "JobRepository",
    "TemplateRepository",
    # Extraction and matching
    "ExtractionOracle",
    "TemplateMatch",
    "TemplateMatcher",
    # Workflow
    "JobWorkflowStateMachine",
    "resume_step",
    "slugify_label",
    # Output
    "CSVExporter",
    "BlobStorage",
    # Processors
    "JobCompletionService",
    "AutoProcessingOrchestrator",
    "ProcessingAction",
]
