"""Value types shared by the matching, workflow and processing layers.

Field schemas travel between the database (JSON columns), the extraction
oracle and tool payloads in camelCase dictionaries; these dataclasses are
the typed form used inside the package.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import ValidationError

__all__ = [
    "FieldType",
    "JobStatus",
    "WorkflowStep",
    "UserRole",
    "SuggestedField",
    "AnalysisResult",
    "fields_from_dicts",
    "fields_to_dicts",
]


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class JobStatus(str, Enum):
    """Job lifecycle status. Transitions are monotonic: RECEIVED -> IN_PROGRESS -> COMPLETED."""
    RECEIVED = "RECEIVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class WorkflowStep(str, Enum):
    """Compiler workflow step persisted on the job as ``compiler_step``."""
    LOADING = "loading"
    SELECTING = "selecting"
    ANALYZING = "analyzing"
    CONFIRMING = "confirming"
    EXTRACTING = "extracting"
    REVIEWING = "reviewing"
    COMPLETED = "completed"


class UserRole(str, Enum):
    CLIENT = "CLIENT"
    COMPILER = "COMPILER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class SuggestedField:
    """A single extractable field; ``name`` is the stable join key.

    Attributes:
        name: camelCase identifier used as the key in extracted data
        label: Human readable label, used as the CSV column heading
        type: Value type the oracle is asked to produce
        description: Extraction hint passed to the oracle
        required: Whether the field must be present
        example: Optional sample value
    """
    name: str
    label: str
    type: FieldType = FieldType.STRING
    description: str = ""
    required: bool = False
    example: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SuggestedField":
        """Build a field from its camelCase dictionary form.

        Raises:
            ValidationError: If the name is missing or the type is unknown
        """
        if not isinstance(data, dict) or not data.get("name"):
            raise ValidationError(f"Invalid field definition: {data!r}")
        try:
            field_type = FieldType(data.get("type") or FieldType.STRING.value)
        except ValueError:
            raise ValidationError(f"Unknown field type {data.get('type')!r} for {data['name']}")

        example = data.get("example")
        return cls(
            name=str(data["name"]),
            label=str(data.get("label") or data["name"]),
            type=field_type,
            description=str(data.get("description") or ""),
            required=bool(data.get("required", False)),
            example=None if example is None else str(example),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type.value,
            "description": self.description,
            "required": self.required,
        }
        if self.example is not None:
            out["example"] = self.example
        return out

    def with_changes(self, **changes: Any) -> "SuggestedField":
        return replace(self, **changes)


def fields_from_dicts(items: Optional[Iterable[Dict[str, Any]]]) -> List[SuggestedField]:
    return [SuggestedField.from_dict(item) for item in (items or [])]


def fields_to_dicts(items: Iterable[SuggestedField]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


@dataclass(frozen=True)
class AnalysisResult:
    """Suggested field schema for a job, from AI analysis or a template match."""
    header_fields: List[SuggestedField] = field(default_factory=list)
    line_item_fields: List[SuggestedField] = field(default_factory=list)
    document_type: str = "Invoice"
    confidence: float = 1.0
    notes: Optional[str] = None

    @property
    def all_fields(self) -> List[SuggestedField]:
        return [*self.header_fields, *self.line_item_fields]

    def header_names(self) -> List[str]:
        return [f.name for f in self.header_fields]

    def line_item_names(self) -> List[str]:
        return [f.name for f in self.line_item_fields]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        if not isinstance(data, dict):
            raise ValidationError(f"Invalid analysis result: {data!r}")
        confidence = data.get("confidence")
        return cls(
            header_fields=fields_from_dicts(data.get("headerFields")),
            line_item_fields=fields_from_dicts(data.get("lineItemFields")),
            document_type=str(data.get("documentType") or "Invoice"),
            confidence=1.0 if confidence is None else float(confidence),
            notes=data.get("notes"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "headerFields": fields_to_dicts(self.header_fields),
            "lineItemFields": fields_to_dicts(self.line_item_fields),
            "documentType": self.document_type,
            "confidence": self.confidence,
        }
        if self.notes is not None:
            out["notes"] = self.notes
        return out

    def with_changes(self, **changes: Any) -> "AnalysisResult":
        return replace(self, **changes)
