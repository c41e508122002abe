import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Iterable, Iterator, Sequence, TypeVar

from queryish import Queryish, VirtualModel

from ..schema import EmbeddedRecord, KnowledgeRecord, RetrievalMatch, UpsertResult

logger = logging.getLogger(__name__)

StorageProviderType = TypeVar("StorageProviderType", bound="StorageProvider")


class BaseStorageQuerySet(Queryish, Generic[StorageProviderType]):
    """Base Queryish QuerySet. Subclasses are generated dynamically by Queryish."""

    # Defaults to None even though this isn't a valid type as Queryish
    # uses 'hasattr' to check if it can copy a Meta attribute from the Virtual Model
    storage_provider: StorageProviderType = None  # type: ignore
    model: type["BaseStorageDocument"]

    def embedding_filter(self) -> list[float]:
        """The query vector. Similarity is the only supported filter."""
        filter_map = {filter[0]: filter[1] for filter in self.filters}
        embedding = filter_map.pop("embedding", None)
        if embedding is None:
            raise ValueError("embedding filter is required")
        if filter_map:
            raise NotImplementedError(
                f"Unsupported filters: {', '.join(sorted(filter_map))}"
            )
        if self.ordering:
            raise NotImplementedError("Ordering is not supported for querying")
        return embedding

    def run_query(self) -> Iterator["BaseStorageDocument"]:
        """Execute the query and return the results, closest first."""
        raise NotImplementedError


class BaseStorageDocument(VirtualModel):
    """Base virtual model for records in storage backends. Subclasses are generated dynamically by StorageProviders."""

    base_query_class = BaseStorageQuerySet
    pk_field_name = "document_key"

    document_key: str
    content: str
    metadata: dict[str, Any]
    score: float

    class Meta:
        fields = ["document_key", "content", "metadata", "score"]
        storage_provider: "StorageProvider"

    def __str__(self):
        return self.document_key


class StorageProvider(ABC):
    """Base class for vector storage backends.

    Each provider writes to a single namespace. Records are keyed by their
    id, so writing a record again replaces the stored copy.
    """

    base_queryset_cls: ClassVar[type[BaseStorageQuerySet]]

    def __init__(self, *, namespace: str | None = None, dimensions: int | None = None):
        self.namespace = namespace
        self.dimensions = dimensions

    @property
    def document_cls(self):
        """Build a document class for this storage provider."""
        meta = type(
            "Meta",
            (BaseStorageDocument.Meta,),
            {
                "storage_provider": self,
            },
        )

        # Determine document class name
        document_class_name = f"{self.__class__.__name__}Document"
        if self.__class__.__name__.endswith("Provider"):
            document_class_name = self.__class__.__name__.replace(
                "Provider", "Document"
            )

        return type(
            document_class_name,
            (BaseStorageDocument,),
            {"Meta": meta, "base_query_class": self.base_queryset_cls},
        )

    def upsert(
        self,
        records: Sequence[KnowledgeRecord],
        vectors: Sequence[list[float] | None],
    ) -> UpsertResult:
        """Write records with their vectors, matched by position.

        Records without a vector are dropped rather than written with a
        placeholder.
        """
        if len(records) != len(vectors):
            raise ValueError(
                f"Got {len(records)} records but {len(vectors)} vectors"
            )

        embedded_records = [
            record.add_embedding(vector)
            for record, vector in zip(records, vectors, strict=True)
            if vector is not None
        ]
        result = UpsertResult(
            accepted=len(embedded_records),
            dropped=len(records) - len(embedded_records),
        )

        if result.dropped:
            logger.warning(
                f"Dropped {result.dropped} of {len(records)} records with no embedding"
            )

        if embedded_records:
            self.add(embedded_records)
            logger.info(
                f"Upserted {result.accepted} records to namespace '{self.namespace}'"
            )

        return result

    def query(self, vector: list[float], top_k: int = 5) -> list[RetrievalMatch]:
        """Return up to ``top_k`` matches for ``vector``, closest first."""
        if top_k <= 0:
            return []

        documents = list(self.objects.filter(embedding=vector)[:top_k])
        matches = [
            RetrievalMatch(
                id=document.document_key,
                score=float(document.score or 0.0),
                metadata={**document.metadata, "content": document.content},
            )
            for document in documents
        ]
        return sorted(matches, key=lambda match: match.score, reverse=True)

    @abstractmethod
    def add(self, records: Iterable["EmbeddedRecord"]):
        """Store records in the vector database."""
        pass

    @abstractmethod
    def delete(self, ids: Iterable[str]):
        """Delete records by their ids."""
        pass

    @abstractmethod
    def clear(self):
        """Remove every record in the namespace."""
        ...

    def health_check(self) -> bool:
        return True

    @property
    def objects(self):
        return self.document_cls().objects
