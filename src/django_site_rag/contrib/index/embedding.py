import logging
from abc import ABC, abstractmethod
from typing import Sequence

from django_site_rag.conf import get_setting
from django_site_rag.llm import LLMService

from .schema import KnowledgeRecord

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when a vector required for a single request cannot be produced."""


class EmbeddingTransformer(ABC):
    """Base class for embedding transformers which turn text into vectors."""

    dimensions: int

    @property
    def transformer_id(self) -> str:
        """Get unique identifier for this transformer."""
        return self.__class__.__name__

    @abstractmethod
    def embed_string(self, text: str) -> list[float]:
        """Embed a single string.

        Raises:
            EmbeddingError: if no vector could be produced.
        """
        pass

    @abstractmethod
    def embed_batch(self, texts: Sequence[str]) -> list[list[float] | None]:
        """Embed a batch of strings, returning one entry per input in the same
        order. An entry is None where no vector is available. Never raises
        for provider failures."""
        pass

    def embed_records(
        self, records: Sequence[KnowledgeRecord], *, batch_size: int = 100
    ) -> list[list[float] | None]:
        """Embed record contents in batches, keeping index correspondence."""
        vectors: list[list[float] | None] = []
        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            vectors.extend(self.embed_batch([record.content for record in batch]))
        return vectors


class CoreEmbeddingTransformer(EmbeddingTransformer):
    """Embedding transformer that uses the core embeddings API."""

    def __init__(self, llm_service: LLMService, *, dimensions: int | None = None):
        """Initialize with a core LLM Service instance.

        Args:
            llm_service: The LLM service
            dimensions: Vector length requested from, and enforced on, the
                provider. Defaults to ``SITE_RAG_EMBEDDING_DIMENSIONS``.
        """
        self.llm_service = llm_service
        self.dimensions = dimensions or get_setting("EMBEDDING_DIMENSIONS")

    @property
    def transformer_id(self) -> str:
        """Get unique identifier for this transformer."""
        return f"core_{self.llm_service.service_id}:{self.dimensions}"

    def _request(self, inputs):
        return self.llm_service.embedding(inputs, dimensions=self.dimensions).data

    def _check_vector(self, vector) -> list[float] | None:
        if vector is None:
            return None
        if len(vector) != self.dimensions:
            logger.error(
                f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
            )
            return None
        return list(vector)

    def embed_string(self, text: str) -> list[float]:
        """Embed a string using the core embedding API."""
        try:
            data = self._request(text)
            vector = self._check_vector(data[0].embedding) if data else None
        except Exception as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if vector is None:
            raise EmbeddingError("No usable embedding returned for query")
        return vector

    def embed_batch(self, texts: Sequence[str]) -> list[list[float] | None]:
        """Embed a batch of strings with a single provider request."""
        if not texts:
            return []

        results: list[list[float] | None] = [None] * len(texts)
        logger.info(f"Embedding batch of {len(texts)} texts")
        try:
            data = self._request(list(texts))
        except Exception:
            logger.exception(f"Embedding batch of {len(texts)} texts failed")
            return results

        for position, item in enumerate(data):
            index = getattr(item, "index", position)
            if 0 <= index < len(results):
                results[index] = self._check_vector(item.embedding)

        missing = results.count(None)
        if missing:
            logger.warning(f"{missing} of {len(texts)} texts have no embedding")
        return results
