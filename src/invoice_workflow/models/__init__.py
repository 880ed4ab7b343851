"""Models for the invoice workflow application.

This module exposes the SQLAlchemy table definitions together with the
value types (field schemas, statuses, workflow steps) used across the
package.
"""

from .fields import (
    AnalysisResult,
    FieldType,
    JobStatus,
    SuggestedField,
    UserRole,
    WorkflowStep,
    fields_from_dicts,
    fields_to_dicts,
)
from .tables import (
    Base,
    Client,
    ExtractionTemplate,
    InboxEmail,
    Job,
    JobFile,
    JobOutput,
    SystemSetting,
    User,
)

__all__ = [
    "Base",
    "Client",
    "User",
    "Job",
    "JobFile",
    "JobOutput",
    "ExtractionTemplate",
    "SystemSetting",
    "InboxEmail",
    "FieldType",
    "JobStatus",
    "WorkflowStep",
    "UserRole",
    "SuggestedField",
    "AnalysisResult",
    "fields_from_dicts",
    "fields_to_dicts",
]
