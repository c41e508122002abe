import logging
import uuid

from qdrant_client import QdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.models import Distance

from ..schema import EmbeddedRecord
from .base import BaseStorageDocument, BaseStorageQuerySet, StorageProvider

logger = logging.getLogger(__name__)

# Payload key holding the record id, as Qdrant point ids must be UUIDs
RECORD_ID_PAYLOAD_KEY = "record_id"


def point_id(record_id: str) -> str:
    """Deterministic point id, so writing a record again overwrites it."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))


class QdrantQuerySet(BaseStorageQuerySet["QdrantProvider"]):
    def get_instance(self, val) -> BaseStorageDocument:
        metadata = dict(val.payload or {})
        record_id = metadata.pop(RECORD_ID_PAYLOAD_KEY, str(val.id))
        return self.model(
            document_key=record_id,
            content=metadata.get("content", ""),
            metadata=metadata,
            score=val.score,
        )

    def run_query(self):
        if not self.storage_provider:
            raise ValueError("Storage provider is required")

        storage_provider = self.storage_provider
        client = self.storage_provider.client

        embedding = self.embedding_filter()

        if self.offset:
            raise NotImplementedError(
                "Offsets are not supported for the Qdrant provider"
            )

        if not client.collection_exists(storage_provider.namespace):
            logger.warning(
                f"Qdrant collection '{storage_provider.namespace}' does not exist"
            )
            return

        response = client.query_points(
            collection_name=storage_provider.namespace,
            query=embedding,
            limit=self.limit or 10,
            with_payload=True,
        )

        for point in response.points:
            yield self.get_instance(point)


class QdrantProvider(StorageProvider):
    """Vector storage using Qdrant. The namespace is the collection name."""

    base_queryset_cls = QdrantQuerySet

    def __init__(
        self,
        *,
        host: str,
        port: int = 6333,
        api_key: str | None = None,
        dimensions: int,
        timeout: int | None = None,
        **kwargs,
    ):
        super().__init__(dimensions=dimensions, **kwargs)
        self.client = QdrantClient(url=host, port=port, api_key=api_key, timeout=timeout)

    def _create_or_get_collection(self):
        if not self.client.collection_exists(self.namespace):
            logger.info(f"Creating Qdrant collection '{self.namespace}'")
            self.client.create_collection(
                collection_name=self.namespace,
                vectors_config=qdrant_models.VectorParams(
                    size=self.dimensions, distance=Distance.COSINE
                ),
            )

    def add(self, records: list["EmbeddedRecord"]):
        """Store records in the vector store."""
        self._create_or_get_collection()
        points = []
        for record in records:
            points.append(
                qdrant_models.PointStruct(
                    id=point_id(record.id),
                    vector=record.vector,
                    payload={
                        **record.store_metadata(),
                        RECORD_ID_PAYLOAD_KEY: record.id,
                    },
                )
            )

        self.client.upsert(collection_name=self.namespace, points=points)

    def delete(self, ids: list[str]):
        """Delete records by their ids."""
        self.client.delete(
            collection_name=self.namespace,
            points_selector=qdrant_models.PointIdsList(
                points=[point_id(record_id) for record_id in ids]
            ),
        )

    def clear(self):
        """Drop the collection. It is recreated on the next write."""
        if self.client.collection_exists(self.namespace):
            self.client.delete_collection(collection_name=self.namespace)

    def health_check(self) -> bool:
        try:
            self.client.get_collections()
        except Exception:
            logger.exception("Qdrant health check failed")
            return False
        return True
