"""Fake collaborators and vector helpers shared by the tests."""

import math
from typing import Dict, List, Optional
from unittest.mock import Mock

from invoice_workflow.config import Config
from invoice_workflow.matching import build_embedding_key

DIMENSIONS = Config.EMBEDDING_DIMENSIONS


def unit_vector(index: int = 0, dimensions: int = DIMENSIONS) -> List[float]:
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


def vector_with_score(score: float, dimensions: int = DIMENSIONS) -> List[float]:
    """Return a unit vector whose cosine similarity with ``unit_vector(0)`` is ``score``."""
    vector = [0.0] * dimensions
    vector[0] = score
    vector[1] = math.sqrt(max(0.0, 1.0 - score * score))
    return vector


class FakeEmbeddingService:
    """Deterministic stand-in for EmbeddingService.

    Texts registered through ``register`` embed to the given vector;
    anything else embeds to ``unit_vector(0)``.
    """

    def __init__(self, dimensions: int = DIMENSIONS) -> None:
        self.dimensions = dimensions
        self.vectors: Dict[str, List[float]] = {}
        self.calls: List[str] = []

    def register(self, supplier: str, client_name: Optional[str], vector: List[float]) -> None:
        self.vectors[build_embedding_key(supplier, client_name)] = vector

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vectors.get(text, unit_vector(0, self.dimensions)))


def make_chat_response(content: Optional[str]) -> Mock:
    """Build an object shaped like an OpenAI chat completion response."""
    message = Mock()
    message.content = content
    choice = Mock()
    choice.message = message
    response = Mock()
    response.choices = [choice]
    return response
