from ..schema import EmbeddedRecord
from .base import BaseStorageDocument, BaseStorageQuerySet, StorageProvider


class InMemoryQuerySet(BaseStorageQuerySet["InMemoryProvider"]):
    def get_instance(self, record: EmbeddedRecord, score: float) -> BaseStorageDocument:
        return self.model(
            document_key=record.id,
            content=record.content,
            metadata=record.store_metadata(),
            score=score,
        )

    def run_query(self):
        import numpy as np

        storage_provider = self.storage_provider
        embedding = self.embedding_filter()
        threshold = storage_provider.similarity_threshold

        limit = self.limit or 10
        query_vector = np.asarray(embedding, dtype=float)
        query_norm = np.linalg.norm(query_vector)

        similarities = []
        for record in storage_provider.records.values():
            record_vector = np.asarray(record.vector, dtype=float)
            norm = query_norm * np.linalg.norm(record_vector)
            cosine_similarity = (
                float(np.dot(query_vector, record_vector) / norm) if norm else 0.0
            )
            if threshold is None or cosine_similarity >= threshold:
                similarities.append((cosine_similarity, record))

        sorted_similarities = sorted(
            similarities, key=lambda pair: pair[0], reverse=True
        )
        for score, record in sorted_similarities[self.offset : self.offset + limit]:
            yield self.get_instance(record, score)


class InMemoryProvider(StorageProvider):
    """Simple in-memory storage for testing."""

    base_queryset_cls = InMemoryQuerySet

    def __init__(self, *, similarity_threshold: float | None = None, **kwargs):
        super().__init__(**kwargs)
        self.similarity_threshold = similarity_threshold
        self.records: dict[str, "EmbeddedRecord"] = {}

    def add(self, records: list["EmbeddedRecord"]):
        """Store records in memory, replacing any with the same id."""
        for record in records:
            self.records[record.id] = record

    def delete(self, ids: list[str]):
        """Delete records by their ids."""
        for record_id in ids:
            self.records.pop(record_id, None)

    def clear(self):
        """Clear the vector database."""
        self.records.clear()
