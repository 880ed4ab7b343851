"""Template matching: embeddings and similarity ranking of saved templates."""

from .embedding_service import EmbeddingService, build_embedding_key
from .template_matcher import TemplateMatch, TemplateMatcher

__all__ = ["EmbeddingService", "build_embedding_key", "TemplateMatch", "TemplateMatcher"]
