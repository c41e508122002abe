import logging
import time
from typing import TYPE_CHECKING, ClassVar, Iterable, Sequence

from django.core.exceptions import ImproperlyConfigured
from django.utils.text import slugify

from django_site_rag.conf import get_setting

from .builder import ChunkBuilder
from .cleansing import ContentCleanser, RegexContentCleanser
from .schema import (
    IngestionReport,
    KnowledgeRecord,
    RetrievalMatch,
    SkippedItem,
    UpsertResult,
)
from .source import FiltersItems

if TYPE_CHECKING:
    from django_site_rag.llm import LLMService

    from .embedding import EmbeddingTransformer
    from .source import Source
    from .storage.base import StorageProvider


logger = logging.getLogger(__name__)


class KnowledgeIndex:
    """
    A pipeline from web content to a namespace of knowledge records, and
    the retrieval side used to answer questions from it.

    Configure it by subclassing:

        @registry.register()
        class SupportIndex(KnowledgeIndex):
            sources = [FirecrawlSource(start_url="https://example.com/", api_key=...)]
            cleanser = LLMContentCleanser(cleansing_service)
            embedding_transformer = CoreEmbeddingTransformer(embedding_service)
            storage_provider = QdrantProvider(host=..., dimensions=768)
            chat_service = chat_service
    """

    sources: ClassVar[list["Source"]]
    embedding_transformer: ClassVar["EmbeddingTransformer"]
    storage_provider: ClassVar["StorageProvider"]
    cleanser: ClassVar[ContentCleanser] = RegexContentCleanser()
    chunk_builder: ClassVar[ChunkBuilder] = ChunkBuilder()
    chat_service: ClassVar["LLMService | None"] = None
    namespace: ClassVar[str | None] = None
    page_delay: ClassVar[float | None] = None
    embedding_batch_size: ClassVar[int | None] = None
    top_k: ClassVar[int | None] = None

    @property
    def index_id(self):
        class_name_slug = slugify(self.__class__.__name__)
        return class_name_slug

    def __init__(self):
        if self.namespace:
            self.storage_provider.namespace = self.namespace
        elif not self.storage_provider.namespace:
            self.storage_provider.namespace = self.index_id

        embedding_dimensions = self.embedding_transformer.dimensions
        storage_dimensions = self.storage_provider.dimensions
        if storage_dimensions is not None and storage_dimensions != embedding_dimensions:
            raise ImproperlyConfigured(
                f"{self.__class__.__name__} embeds with {embedding_dimensions} "
                f"dimensions but its storage provider expects {storage_dimensions}"
            )

    def get_page_delay(self) -> float:
        if self.page_delay is None:
            return get_setting("PAGE_DELAY")
        return self.page_delay

    def get_embedding_batch_size(self) -> int:
        return self.embedding_batch_size or get_setting("EMBEDDING_BATCH_SIZE")

    def get_top_k(self) -> int:
        return self.top_k or get_setting("TOP_K")

    def collect(
        self, sources: Iterable["Source"] | None = None
    ) -> tuple[list[KnowledgeRecord], IngestionReport]:
        """
        Cleanse and chunk every item from the sources, one page at a time.

        A failure while processing one item is logged and counted, and the
        remaining items are still processed.
        """
        report = IngestionReport()
        records: list[KnowledgeRecord] = []

        for source in self.sources if sources is None else sources:
            logger.info(f"Getting items from source {source.source_id}")
            for item in source.get_items():
                report.items_seen += 1

                reason = (
                    source.skip_reason(item)
                    if isinstance(source, FiltersItems)
                    else None
                )
                if reason:
                    logger.warning(f"Skipped {item.url or 'unknown'}: {reason}")
                    report.skipped.append(SkippedItem(url=item.url, reason=reason))
                    continue

                try:
                    item_records = self.process_item(item)
                except Exception:
                    logger.exception(f"Error processing {item.url}")
                    report.items_failed += 1
                    continue

                records.extend(item_records)
                report.items_processed += 1
                logger.info(f"Processed {item.url}: {len(item_records)} records")

        report.records_built = len(records)
        return records, report

    def process_item(self, item) -> list[KnowledgeRecord]:
        """Cleanse one item's text and build its records."""
        cleaned = self.cleanser.cleanse(item.primary_text)
        if self.cleanser.calls_provider:
            delay = self.get_page_delay()
            if delay > 0:
                time.sleep(delay)
        return self.chunk_builder.build(item.with_text(cleaned))

    def update(self, records: Sequence[KnowledgeRecord]) -> UpsertResult:
        """Embed records in batches and write them to the storage provider."""
        result = UpsertResult()
        batch_size = self.get_embedding_batch_size()

        for i in range(0, len(records), batch_size):
            batch = records[i : i + batch_size]
            vectors = self.embedding_transformer.embed_records(
                batch, batch_size=batch_size
            )
            result += self.storage_provider.upsert(batch, vectors)

        logger.info(
            f"Stored {result.accepted} records, dropped {result.dropped} "
            f"without embeddings"
        )
        return result

    def build(self, *, replace: bool = False) -> IngestionReport:
        """
        Build the index from configured sources.

        This will:
        1. Get items from all sources, cleanse and chunk them
        2. Embed the resulting records
        3. Upsert them into the storage namespace

        Records are merged by id. With ``replace=True`` the namespace is
        cleared first, but only if the run produced records to replace it with.
        """
        records, report = self.collect()

        if not records:
            logger.warning("No records produced by sources")
            return report

        if replace:
            logger.info(f"Clearing namespace '{self.storage_provider.namespace}'")
            self.storage_provider.clear()
            report.replaced = True

        report.upsert = self.update(records)
        return report

    def search(self, query: str, *, top_k: int | None = None) -> list[RetrievalMatch]:
        """Embed the query and return the closest records, best first.

        Raises:
            ValueError: if the query is empty
            EmbeddingError: if the query cannot be embedded
        """
        if not query or not query.strip():
            raise ValueError("Search query cannot be empty")

        vector = self.embedding_transformer.embed_string(query)
        return self.storage_provider.query(vector, top_k or self.get_top_k())

    def health_check(self) -> dict[str, bool]:
        from .embedding import EmbeddingError

        status = {"embedding": True, "storage": self.storage_provider.health_check()}
        try:
            self.embedding_transformer.embed_string("health check")
        except EmbeddingError:
            logger.exception("Embedding health check failed")
            status["embedding"] = False
        return status


class IndexRegistry:
    def __init__(self):
        self._indexes: dict[str, type[KnowledgeIndex]] = {}

    def register(self, slug: str | None = None):
        """Decorator to register an index."""

        def decorator(cls: type[KnowledgeIndex]) -> type[KnowledgeIndex]:
            index_slug = slug or slugify(cls.__name__)
            self._indexes[index_slug] = cls
            return cls

        return decorator

    def get(self, slug: str) -> type[KnowledgeIndex]:
        if slug not in self._indexes:
            raise KeyError(f"Index '{slug}' not found")
        return self._indexes[slug]

    def list(self) -> dict[str, type[KnowledgeIndex]]:
        return self._indexes.copy()


registry = IndexRegistry()
