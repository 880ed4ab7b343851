"""Workflow module: the compiler workbench and its pure helpers.

This module contains field-schema helpers, extracted-data merging, the
resume rule, typed agent tool results and the JobWorkflowStateMachine.
"""

from .fields import (
    FieldGroup,
    replace_in_analysis,
    replace_in_list,
    slugify_label,
    split_confirmed,
)
from .payload import (
    EDITABLE_SECTIONS,
    apply_review_edit,
    deep_merge,
    merge_extraction_update,
    replace_document,
)
from .resume import resume_step
from .state_machine import ALLOWED_TRANSITIONS, JobWorkflowStateMachine, WorkflowState
from .tool_results import (
    AnalyzeInvoiceResult,
    ExtractInvoiceResult,
    MatchTemplateResult,
    ToolInvocation,
    ToolResult,
    parse_tool_result,
)

__all__ = [
    "FieldGroup",
    "slugify_label",
    "split_confirmed",
    "replace_in_list",
    "replace_in_analysis",
    "EDITABLE_SECTIONS",
    "deep_merge",
    "merge_extraction_update",
    "replace_document",
    "apply_review_edit",
    "resume_step",
    "ToolInvocation",
    "AnalyzeInvoiceResult",
    "ExtractInvoiceResult",
    "MatchTemplateResult",
    "ToolResult",
    "parse_tool_result",
    "JobWorkflowStateMachine",
    "WorkflowState",
    "ALLOWED_TRANSITIONS",
]
