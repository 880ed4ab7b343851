"""Embedding service for template matching.

Templates are indexed by an embedding of ``"<supplier> <client name>"``.
Vectors are always exactly ``Config.EMBEDDING_DIMENSIONS`` long: longer
vectors are truncated, shorter or empty ones are rejected.
"""

import logging
from typing import List, Optional

from langfuse import observe
from openai import OpenAI, OpenAIError

from ..config import Config
from ..exceptions import EmbeddingError

__all__ = ["EmbeddingService", "build_embedding_key"]

logger = logging.getLogger(__name__)


def build_embedding_key(supplier: str, client_name: Optional[str] = None) -> str:
    """Return the text embedded for a supplier/client pair."""
    return f"{supplier.strip()} {(client_name or '').strip()}".strip()


class EmbeddingService:
    """Computes fixed-dimension text embeddings with OpenAI.

    Attributes:
        cli: OpenAI client instance for API communication
        model: Embedding model name
        dimensions: Required vector length
    """

    def __init__(self, api_key: Optional[str] = None,
                 client: Optional[OpenAI] = None,
                 model: str = Config.EMBEDDING_MODEL,
                 dimensions: int = Config.EMBEDDING_DIMENSIONS) -> None:
        """Initialize the service.

        Raises:
            EmbeddingError: If the API key is missing or client creation fails
        """
        if client is None:
            if not api_key:
                raise EmbeddingError("Missing OpenAI API key")
            try:
                client = OpenAI(api_key=api_key)
            except Exception as e:
                raise EmbeddingError(f"OpenAI client initialization error: {str(e)}")
        self.cli: OpenAI = client
        self.model = model
        self.dimensions = dimensions

    @observe(name="embed_text", as_type="generation", capture_output=False)
    def embed(self, text: str) -> List[float]:
        """Embed ``text`` into a vector of exactly ``dimensions`` floats.

        Raises:
            EmbeddingError: If the text is empty, the backend fails, or the
                returned vector is empty or too short
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        try:
            response = self.cli.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except OpenAIError as e:
            raise EmbeddingError(f"Embedding API error: {str(e)}")

        if not response.data:
            raise EmbeddingError("Embedding API returned no data")
        return self.normalize(list(response.data[0].embedding))

    def normalize(self, vector: List[float]) -> List[float]:
        """Enforce the fixed vector length.

        Raises:
            EmbeddingError: If the vector is empty or shorter than required
        """
        if not vector:
            raise EmbeddingError("Failed to generate embedding")
        if len(vector) > self.dimensions:
            logger.debug("Truncating %d-dimension embedding to %d", len(vector), self.dimensions)
            return [float(x) for x in vector[:self.dimensions]]
        if len(vector) < self.dimensions:
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {len(vector)}"
            )
        return [float(x) for x in vector]
