"""Tests for parsing agent tool results."""

import pytest

from invoice_workflow.workflow import (
    AnalyzeInvoiceResult,
    ExtractInvoiceResult,
    MatchTemplateResult,
    ToolInvocation,
    parse_tool_result,
)


def _invocation(tool_name, result, state="result"):
    return ToolInvocation(call_id="call_1", tool_name=tool_name, state=state, result=result)


class TestParseToolResult:
    """Test cases for parse_tool_result."""

    def test_analyze_invoice(self):
        parsed = parse_tool_result(_invocation("analyzeInvoice", {
            "headerFields": [{"name": "total", "label": "Total", "type": "number"}],
            "lineItemFields": [],
        }))

        assert isinstance(parsed, AnalyzeInvoiceResult)
        assert parsed.analysis.header_names() == ["total"]
        assert parsed.analysis.confidence == 1.0

    def test_extract_invoice(self, extracted_payload):
        parsed = parse_tool_result(_invocation("extractInvoice", {
            "extractedData": extracted_payload,
            "headerFields": [{"name": "total"}],
        }))

        assert isinstance(parsed, ExtractInvoiceResult)
        assert parsed.extracted_data == extracted_payload
        assert [f.name for f in parsed.header_fields] == ["total"]
        assert parsed.line_item_fields == []

    def test_match_template(self):
        parsed = parse_tool_result(_invocation("matchTemplate", [
            {"templateId": 3, "supplier": "Acme", "score": 0.91},
            {"templateId": 4, "supplier": "Acme Group", "score": 0.85},
        ]))

        assert isinstance(parsed, MatchTemplateResult)
        assert [m.template_id for m in parsed.matches] == [3, 4]

    @pytest.mark.parametrize("tool_name, result", [
        ("analyzeInvoice", None),
        ("analyzeInvoice", {"headerFields": "total"}),
        ("analyzeInvoice", {"headerFields": [{"label": "no name"}], "lineItemFields": []}),
        ("analyzeInvoice", {"headerFields": [{"name": "x", "type": "money"}],
                            "lineItemFields": []}),
        ("extractInvoice", {"extractedData": None}),
        ("extractInvoice", []),
        ("matchTemplate", []),
        ("matchTemplate", {"templateId": 1}),
        ("matchTemplate", [{"templateId": 1}]),
        ("searchWeb", {"anything": True}),
    ])
    def test_unusable_results_parse_to_none(self, tool_name, result):
        assert parse_tool_result(_invocation(tool_name, result)) is None

    def test_unfinished_invocation_parses_to_none(self):
        assert parse_tool_result(_invocation("analyzeInvoice", None, state="call")) is None

    def test_from_dict(self):
        invocation = ToolInvocation.from_dict({
            "toolCallId": "call_123", "toolName": "extractInvoice",
            "state": "result", "result": {"extractedData": {"header": {}}},
        })
        assert invocation == ToolInvocation("call_123", "extractInvoice", "result",
                                            {"extractedData": {"header": {}}})
