"""Template matching for the invoice workflow application.

Ranks saved extraction templates by embedding similarity to a supplier
name (plus optional client name) and maintains the template store.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from langfuse import observe

from ..config import Config
from ..exceptions import ValidationError
from ..models import (
    AnalysisResult,
    ExtractionTemplate,
    SuggestedField,
    fields_from_dicts,
    fields_to_dicts,
)
from .embedding_service import build_embedding_key

if TYPE_CHECKING:
    from ..database import TemplateRepository
    from .embedding_service import EmbeddingService

__all__ = ["TemplateMatch", "TemplateMatcher"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateMatch:
    """A saved template scored against a query."""
    template_id: int
    supplier: str
    client_name: Optional[str] = None
    header_fields: List[SuggestedField] = field(default_factory=list)
    line_item_fields: List[SuggestedField] = field(default_factory=list)
    score: float = 0.0

    @classmethod
    def from_template(cls, template: ExtractionTemplate, score: float) -> "TemplateMatch":
        return cls(
            template_id=template.id,
            supplier=template.supplier,
            client_name=template.client_name,
            header_fields=fields_from_dicts(template.header_fields),
            line_item_fields=fields_from_dicts(template.line_item_fields),
            score=score,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateMatch":
        if not isinstance(data, dict) or data.get("templateId") is None or not data.get("supplier"):
            raise ValidationError(f"Invalid template match: {data!r}")
        return cls(
            template_id=data["templateId"],
            supplier=str(data["supplier"]),
            client_name=data.get("clientName"),
            header_fields=fields_from_dicts(data.get("headerFields")),
            line_item_fields=fields_from_dicts(data.get("lineItemFields")),
            score=float(data.get("score") or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "templateId": self.template_id,
            "supplier": self.supplier,
            "clientName": self.client_name,
            "headerFields": fields_to_dicts(self.header_fields),
            "lineItemFields": fields_to_dicts(self.line_item_fields),
            "score": self.score,
        }

    def to_analysis(self) -> AnalysisResult:
        """The template's schema as an analysis result, with the match score as confidence."""
        return AnalysisResult(
            header_fields=list(self.header_fields),
            line_item_fields=list(self.line_item_fields),
            document_type="Invoice",
            confidence=self.score or 1.0,
        )


class TemplateMatcher:
    """Ranks and stores supplier-specific extraction templates.

    Attributes:
        repository: Template store with a vector search
        embedder: Service producing fixed-dimension embeddings
        min_score: Similarity floor for a candidate to be returned
        limit: Number of nearest neighbours considered
    """

    def __init__(self, repository: "TemplateRepository", embedder: "EmbeddingService",
                 min_score: float = Config.TEMPLATE_MATCH_MIN_SCORE,
                 limit: int = Config.TEMPLATE_MATCH_LIMIT) -> None:
        self.repository = repository
        self.embedder = embedder
        self.min_score = min_score
        self.limit = limit

    @observe(name="match_template")
    def match(self, supplier: str, client_name: Optional[str] = None) -> List[TemplateMatch]:
        """Return saved templates similar to the supplier, best first.

        Candidates scoring below ``min_score`` are dropped. An empty list
        means no known template.

        Raises:
            ValidationError: If the supplier is empty
            EmbeddingError: If the query cannot be embedded
        """
        if not supplier or not supplier.strip():
            raise ValidationError("Supplier name is required for template matching")

        vector = self.embedder.embed(build_embedding_key(supplier, client_name))
        hits = [hit for hit in self.repository.search(vector, self.limit)
                if hit.score >= self.min_score]
        if not hits:
            logger.info("No template above %.2f for supplier %r", self.min_score, supplier)
            return []

        templates = self.repository.get_many([hit.template_id for hit in hits])
        matches = [
            TemplateMatch.from_template(templates[hit.template_id], hit.score)
            for hit in hits if hit.template_id in templates
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        logger.info("Matched %d template(s) for supplier %r (best %.3f)",
                    len(matches), supplier, matches[0].score if matches else 0.0)
        return matches

    def upsert_template(self, supplier: str,
                        header_fields: Sequence[SuggestedField],
                        line_item_fields: Sequence[SuggestedField],
                        client_id: Optional[int] = None,
                        client_name: Optional[str] = None,
                        template_id: Optional[int] = None,
                        created_by: Optional[int] = None) -> int:
        """Save a template, updating in place where one already exists.

        With ``template_id`` that template is patched. Otherwise an existing
        template for the same (client, supplier) pair is patched, or a new
        one is inserted. The embedding is always recomputed.

        Returns:
            ID of the saved template

        Raises:
            ValidationError: If the supplier is empty
            EmbeddingError: If the embedding cannot be computed
        """
        supplier = (supplier or "").strip()
        if not supplier:
            raise ValidationError("Supplier name is required to save a template")

        embedding = self.embedder.embed(build_embedding_key(supplier, client_name))
        headers = fields_to_dicts(header_fields)
        line_items = fields_to_dicts(line_item_fields)

        if template_id is None and client_id is not None:
            existing = self.repository.find_by_client_supplier(client_id, supplier)
            if existing is not None:
                template_id = existing.id

        if template_id is not None:
            self.repository.patch(
                template_id,
                supplier=supplier,
                client_name=client_name,
                header_fields=headers,
                line_item_fields=line_items,
                embedding=embedding,
            )
            return template_id

        return self.repository.insert(
            supplier=supplier,
            header_fields=headers,
            line_item_fields=line_items,
            embedding=embedding,
            client_id=client_id,
            client_name=client_name,
            created_by=created_by,
        )
