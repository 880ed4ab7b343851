"""Typed results of the conversational agent's tool calls.

The agent streams tool invocations whose ``result`` payloads are loose
JSON. Each recognised tool name has its own result type; anything
unrecognised, unfinished or malformed parses to ``None`` and is ignored.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..exceptions import ValidationError
from ..models import AnalysisResult, SuggestedField, fields_from_dicts
from ..matching import TemplateMatch

__all__ = [
    "ToolInvocation",
    "AnalyzeInvoiceResult",
    "ExtractInvoiceResult",
    "MatchTemplateResult",
    "ToolResult",
    "parse_tool_result",
]

logger = logging.getLogger(__name__)

RESULT_STATE = "result"


@dataclass(frozen=True)
class ToolInvocation:
    """One tool call from the agent stream, keyed by a stable call id."""
    call_id: str
    tool_name: str
    state: str = RESULT_STATE
    result: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolInvocation":
        return cls(
            call_id=str(data.get("toolCallId", "")),
            tool_name=str(data.get("toolName", "")),
            state=str(data.get("state", "")),
            result=data.get("result"),
        )


@dataclass(frozen=True)
class AnalyzeInvoiceResult:
    analysis: AnalysisResult


@dataclass(frozen=True)
class ExtractInvoiceResult:
    extracted_data: Dict[str, Any]
    header_fields: List[SuggestedField] = field(default_factory=list)
    line_item_fields: List[SuggestedField] = field(default_factory=list)


@dataclass(frozen=True)
class MatchTemplateResult:
    matches: List[TemplateMatch]


ToolResult = Union[AnalyzeInvoiceResult, ExtractInvoiceResult, MatchTemplateResult]


def _analyze_invoice(result: Any) -> Optional[AnalyzeInvoiceResult]:
    if not isinstance(result, dict):
        return None
    headers, line_items = result.get("headerFields"), result.get("lineItemFields")
    if not isinstance(headers, list) or not isinstance(line_items, list):
        return None
    return AnalyzeInvoiceResult(AnalysisResult(
        header_fields=fields_from_dicts(headers),
        line_item_fields=fields_from_dicts(line_items),
        document_type="Invoice",
        confidence=1.0,
    ))


def _extract_invoice(result: Any) -> Optional[ExtractInvoiceResult]:
    if not isinstance(result, dict):
        return None
    data = result.get("extractedData")
    if not isinstance(data, dict) or not data:
        return None
    return ExtractInvoiceResult(
        extracted_data=data,
        header_fields=fields_from_dicts(result.get("headerFields")),
        line_item_fields=fields_from_dicts(result.get("lineItemFields")),
    )


def _match_template(result: Any) -> Optional[MatchTemplateResult]:
    if not isinstance(result, list) or not result:
        return None
    return MatchTemplateResult([TemplateMatch.from_dict(item) for item in result])


_PARSERS = {
    "analyzeInvoice": _analyze_invoice,
    "extractInvoice": _extract_invoice,
    "matchTemplate": _match_template,
}


def parse_tool_result(invocation: ToolInvocation) -> Optional[ToolResult]:
    """Parse a finished invocation into its typed result, or None to ignore it."""
    if invocation.state != RESULT_STATE:
        return None
    parser = _PARSERS.get(invocation.tool_name)
    if parser is None:
        return None
    try:
        return parser(invocation.result)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("Ignoring malformed %s result (call %s): %s",
                       invocation.tool_name, invocation.call_id, e)
        return None
