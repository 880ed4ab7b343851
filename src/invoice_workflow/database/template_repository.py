"""Template repository for the invoice workflow application.

Stores extraction templates and answers nearest-neighbour queries over
their embeddings. Vectors are kept as JSON and searched in memory with
numpy cosine similarity, which is adequate for per-deployment template
counts.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Config
from ..exceptions import DatabaseError, EmbeddingError, ValidationError
from ..models import ExtractionTemplate
from .database_manager import DatabaseManager

__all__ = ["TemplateRepository", "SearchHit"]

logger = logging.getLogger(__name__)

_PATCHABLE = ("supplier", "client_name", "header_fields", "line_item_fields", "embedding")


@dataclass(frozen=True)
class SearchHit:
    template_id: int
    score: float


class TemplateRepository:
    """Repository for extraction templates and their vector index.

    Attributes:
        db_manager: DatabaseManager instance for database operations
        dimensions: Required embedding length
    """

    def __init__(self, db_manager: DatabaseManager,
                 dimensions: int = Config.EMBEDDING_DIMENSIONS) -> None:
        self.db_manager: DatabaseManager = db_manager
        self.dimensions: int = dimensions

    def get(self, template_id: int) -> Optional[ExtractionTemplate]:
        session: Session = self.db_manager.create_session()
        try:
            return session.get(ExtractionTemplate, template_id)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def get_many(self, template_ids: Sequence[int]) -> Dict[int, ExtractionTemplate]:
        if not template_ids:
            return {}
        session: Session = self.db_manager.create_session()
        try:
            rows = session.execute(
                select(ExtractionTemplate).where(ExtractionTemplate.id.in_(list(template_ids)))
            ).scalars().all()
            return {row.id: row for row in rows}
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def find_by_client_supplier(self, client_id: Optional[int],
                                supplier: str) -> Optional[ExtractionTemplate]:
        """Return the canonical template for a (client, supplier) pair, if any."""
        session: Session = self.db_manager.create_session()
        try:
            stmt = select(ExtractionTemplate).where(ExtractionTemplate.supplier == supplier)
            if client_id is None:
                stmt = stmt.where(ExtractionTemplate.client_id.is_(None))
            else:
                stmt = stmt.where(ExtractionTemplate.client_id == client_id)
            return session.execute(
                stmt.order_by(ExtractionTemplate.id).limit(1)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def list_templates(self, client_id: Optional[int] = None) -> List[ExtractionTemplate]:
        session: Session = self.db_manager.create_session()
        try:
            stmt = select(ExtractionTemplate).order_by(ExtractionTemplate.id)
            if client_id is not None:
                stmt = stmt.where(ExtractionTemplate.client_id == client_id)
            return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def insert(self, supplier: str, header_fields: List[Dict[str, Any]],
               line_item_fields: List[Dict[str, Any]], embedding: Sequence[float],
               client_id: Optional[int] = None, client_name: Optional[str] = None,
               created_by: Optional[int] = None) -> int:
        """Insert a new template.

        Returns:
            Database ID of the created template

        Raises:
            EmbeddingError: If the embedding has the wrong length
            DatabaseError: If database operation fails
        """
        vector = self._check_embedding(embedding)
        session: Session = self.db_manager.create_session()
        try:
            template = ExtractionTemplate(
                client_id=client_id,
                supplier=supplier,
                client_name=client_name,
                header_fields=header_fields,
                line_item_fields=line_item_fields,
                embedding=vector,
                created_by=created_by,
            )
            session.add(template)
            session.commit()
            logger.info("Inserted template %s for supplier %r", template.id, supplier)
            return template.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def patch(self, template_id: int, **fields: Any) -> None:
        """Overwrite the given template columns.

        Raises:
            ValidationError: If an unknown column is given or the template is missing
            EmbeddingError: If a new embedding has the wrong length
        """
        unknown = set(fields) - set(_PATCHABLE)
        if unknown:
            raise ValidationError(f"Cannot patch template fields: {', '.join(sorted(unknown))}")
        if "embedding" in fields:
            fields["embedding"] = self._check_embedding(fields["embedding"])

        session: Session = self.db_manager.create_session()
        try:
            template = session.get(ExtractionTemplate, template_id)
            if template is None:
                raise ValidationError(f"Template {template_id} not found")
            for name, value in fields.items():
                setattr(template, name, value)
            session.commit()
            logger.info("Updated template %s", template_id)
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database update error: {str(e)}")
        finally:
            session.close()

    def search(self, vector: Sequence[float], limit: int) -> List[SearchHit]:
        """Return up to ``limit`` templates nearest to ``vector`` by cosine similarity.

        Results are ordered by descending score.
        """
        session: Session = self.db_manager.create_session()
        try:
            rows = session.execute(
                select(ExtractionTemplate.id, ExtractionTemplate.embedding)
            ).all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

        if not rows or limit <= 0:
            return []

        ids = [row[0] for row in rows]
        matrix = np.asarray([row[1] for row in rows], dtype=np.float64)
        query = np.asarray(vector, dtype=np.float64)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [SearchHit(template_id=ids[i], score=float(scores[i])) for i in order]

    def _check_embedding(self, embedding: Sequence[float]) -> List[float]:
        vector = [float(x) for x in embedding]
        if len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Template embedding must have {self.dimensions} dimensions, got {len(vector)}"
            )
        return vector
