"""Extraction oracle for the invoice workflow application.

This module contains the ExtractionOracle class, which wraps OpenAI chat
completions with structured (JSON schema) output for three jobs:
suggesting a field schema for a document set, extracting values for a
confirmed field schema, and reading the supplier name off an invoice.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from langfuse import observe
from openai import OpenAI, OpenAIError

from ..config import Config
from ..exceptions import DataExtractionError, ValidationError
from ..models import AnalysisResult, FieldType, SuggestedField
from ..utils import retry_call
from .document_loader import DocumentLoader, LoadedDocument

__all__ = ["ExtractionOracle", "build_extraction_schema"]

logger = logging.getLogger(__name__)

_JSON_TYPES: Dict[FieldType, str] = {
    FieldType.STRING: "string",
    FieldType.NUMBER: "number",
    FieldType.DATE: "string",
}

SUPPLIER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "supplier": {
            "type": ["string", "null"],
            "description": "The supplier/company name from the invoice header",
        },
    },
    "required": ["supplier"],
    "additionalProperties": False,
}

_FIELD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "label": {"type": "string"},
        "type": {"type": "string", "enum": [t.value for t in FieldType]},
        "description": {"type": "string"},
        "required": {"type": "boolean"},
        "example": {"type": ["string", "null"]},
    },
    "required": ["name", "label", "type", "description", "required", "example"],
    "additionalProperties": False,
}

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "headerFields": {"type": "array", "items": _FIELD_SCHEMA},
        "lineItemFields": {"type": "array", "items": _FIELD_SCHEMA},
        "documentType": {"type": "string"},
        "confidence": {"type": "number"},
        "notes": {"type": ["string", "null"]},
    },
    "required": ["headerFields", "lineItemFields", "documentType", "confidence", "notes"],
    "additionalProperties": False,
}

SUPPLIER_PROMPT = (
    "Extract the supplier/company name from the invoice document. Look for the company "
    "name in the header section that issued this invoice. Return the exact company name "
    "as it appears on the document. Use null if no supplier can be identified."
)

ANALYSIS_PROMPT = (
    "Analyze {count} document{plural} and suggest the most relevant fields for an invoice "
    "extraction workflow.\n"
    "Separate your suggestions into TWO groups:\n"
    "1. Invoice Header Fields - single-value attributes that appear once per invoice "
    "(e.g., invoiceNumber, invoiceDate, supplierName, totalAmount).\n"
    "2. Invoice Line-Item Fields - columns that repeat for each line-item row "
    "(e.g., itemDescription, quantity, unitPrice, lineTotal).\n"
    "Field names must be camelCase. Dates are returned as YYYY-MM-DD strings."
)


def _field_properties(fields: Sequence[SuggestedField]) -> Dict[str, Any]:
    props: Dict[str, Any] = {}
    for f in fields:
        prop: Dict[str, Any] = {"type": [_JSON_TYPES[f.type], "null"]}
        description = f.description or f.label
        if f.type is FieldType.DATE:
            description = f"{description} (YYYY-MM-DD)"
        prop["description"] = description
        props[f.name] = prop
    return props


def _object_schema(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def build_extraction_schema(header_fields: Sequence[SuggestedField],
                            line_item_fields: Sequence[SuggestedField]) -> Dict[str, Any]:
    """Build the ``{header: {...}, lineItems: [{...}]}`` response schema.

    Number fields map to JSON numbers; string and date fields map to
    strings. Every value is nullable so missing fields come back as null.
    """
    return _object_schema({
        "header": _object_schema(_field_properties(header_fields)),
        "lineItems": {
            "type": "array",
            "items": _object_schema(_field_properties(line_item_fields)),
        },
    })


def _describe(fields: Sequence[SuggestedField]) -> str:
    lines = []
    for f in fields:
        requirement = "Required" if f.required else "Optional"
        lines.append(f"- {f.label} ({f.name}): {f.description} [Type: {f.type.value}, {requirement}]")
    return "\n".join(lines) or "- (none)"


class ExtractionOracle:
    """Structured document extraction backed by OpenAI.

    Attributes:
        cli: OpenAI client instance for API communication
        loader: DocumentLoader used to fetch file URLs
        model: Chat model name
    """

    def __init__(self, api_key: Optional[str] = None,
                 loader: Optional[DocumentLoader] = None,
                 client: Optional[OpenAI] = None,
                 model: str = Config.OPENAI_MODEL,
                 max_attempts: int = Config.ORACLE_MAX_ATTEMPTS,
                 base_delay: float = Config.ORACLE_BASE_DELAY,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        """Initialize the oracle.

        Args:
            api_key: OpenAI API key, required unless ``client`` is given
            loader: Document loader; a default one is created if omitted
            client: Pre-built OpenAI client
            model: Chat model name
            max_attempts: Attempts per model call before giving up
            base_delay: First retry delay in seconds, doubled per attempt
            sleep: Sleep function used between attempts

        Raises:
            DataExtractionError: If the API key is missing or client creation fails
        """
        if client is None:
            if not api_key:
                raise DataExtractionError("Missing OpenAI API key")
            try:
                client = OpenAI(api_key=api_key)
            except Exception as e:
                raise DataExtractionError(f"OpenAI client initialization error: {str(e)}")

        self.cli: OpenAI = client
        self.loader: DocumentLoader = loader or DocumentLoader()
        self.model: str = model
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    @observe(name="extract_invoice")
    def extract(self, file_urls: List[str], header_fields: Sequence[SuggestedField],
                line_item_fields: Sequence[SuggestedField]) -> Dict[str, Any]:
        """Extract values for the given field schema from the documents.

        Multiple documents are treated as one transaction and combined into
        a single header and one list of line items.

        Returns:
            ``{"header": {...}, "lineItems": [{...}, ...]}``

        Raises:
            DataExtractionError: If no fields are given or extraction fails
        """
        if not header_fields and not line_item_fields:
            raise DataExtractionError("No fields specified for extraction")

        documents = self.loader.load(file_urls)
        count = len(documents)
        prompt = (
            f"Extract the following information from {count} invoice document"
            f"{'s' if count > 1 else ''}. If multiple documents are provided they belong to "
            "the same transaction; combine their information into ONE set of header fields "
            "and ONE unified list of line-items.\n\n"
            f"Header fields (single occurrence per invoice):\n{_describe(header_fields)}\n\n"
            f"Line-item fields (repeat for each row in the invoice table):\n"
            f"{_describe(line_item_fields)}\n\n"
            "The lineItems array must contain one entry for every line-item row in the "
            "invoice's item table; do not summarise or omit rows. Values must be taken "
            "from the documents, never invented; use null when a value is absent."
        )
        result = self._structured_call(
            prompt, documents, "invoice_extraction",
            build_extraction_schema(header_fields, line_item_fields),
        )

        header = result.get("header")
        line_items = result.get("lineItems")
        if not isinstance(header, dict) or not isinstance(line_items, list):
            raise DataExtractionError("Extraction result is missing header or lineItems")
        logger.info("Extracted %d header field(s) and %d line item(s) from %d document(s)",
                    len(header), len(line_items), count)
        return {"header": header, "lineItems": line_items}

    @observe(name="extract_supplier")
    def extract_supplier(self, file_urls: List[str]) -> Optional[str]:
        """Read the issuing supplier's name from the documents.

        Any failure is reported as ``None``: an unknown supplier is a
        normal outcome that sends the job to manual processing.
        """
        try:
            documents = self.loader.load(file_urls)
            result = self._structured_call(SUPPLIER_PROMPT, documents, "supplier", SUPPLIER_SCHEMA)
        except Exception as e:
            logger.warning("Supplier extraction failed: %s", e)
            return None

        supplier = result.get("supplier")
        if not isinstance(supplier, str) or not supplier.strip():
            return None
        return supplier.strip()

    @observe(name="analyze_invoice")
    def analyze(self, file_urls: List[str]) -> AnalysisResult:
        """Suggest header and line-item fields for the documents.

        Raises:
            DataExtractionError: If the call fails or returns an unusable schema
        """
        documents = self.loader.load(file_urls)
        count = len(documents)
        prompt = ANALYSIS_PROMPT.format(count=count, plural="" if count == 1 else "s")
        result = self._structured_call(prompt, documents, "field_suggestions", ANALYSIS_SCHEMA)
        try:
            analysis = AnalysisResult.from_dict(result)
        except ValidationError as e:
            raise DataExtractionError(f"Invalid field suggestions: {str(e)}")
        if not analysis.header_fields and not analysis.line_item_fields:
            raise DataExtractionError("No fields suggested for the documents")
        return analysis

    def _structured_call(self, prompt: str, documents: List[LoadedDocument],
                         schema_name: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        content.extend(doc.to_content_part(i) for i, doc in enumerate(documents, start=1))
        messages = [
            {"role": "system", "content": "You are a precise invoice data-extraction engine."},
            {"role": "user", "content": content},
        ]
        raw = self._chat(messages, response_format={
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": schema, "strict": True},
        })
        return self._parse_json(raw)

    @observe(name="openai_chat_completion", as_type="generation", capture_input=False)
    def _chat(self, messages: List[Dict[str, Any]], **kwargs: Any) -> str:
        """Execute an OpenAI chat completion with retries.

        Raises:
            DataExtractionError: If every attempt fails or the response is empty
        """
        try:
            response = retry_call(
                self.cli.chat.completions.create,
                model=self.model,
                messages=messages,
                temperature=0,
                attempts=self.max_attempts,
                base_delay=self.base_delay,
                retry_on=(OpenAIError,),
                sleep=self._sleep,
                **kwargs,
            )
        except OpenAIError as e:
            raise DataExtractionError(f"OpenAI API error: {str(e)}")

        if not response.choices or not response.choices[0].message.content:
            raise DataExtractionError("OpenAI returned empty response")
        return response.choices[0].message.content.strip()

    @staticmethod
    def _parse_json(raw: str) -> Dict[str, Any]:
        try:
            result = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataExtractionError(f"JSON parsing error from AI response: {str(e)}")
        if not isinstance(result, dict):
            raise DataExtractionError("AI returned invalid data format")
        return result
