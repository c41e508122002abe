"""
Schema definitions for the knowledge index.

Source items arrive in a channel-specific shape (a crawled page or a
search-index result) and are normalised into a single ``KnowledgeRecord``
shape by the chunk builder. Nothing downstream of the builder sees a
channel-specific shape.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class SourceChannel(str, Enum):
    """The ingestion channel a record came through."""

    CRAWL = "firecrawl"
    SEARCH = "exa"


@dataclass(frozen=True)
class CrawledPage:
    """A page returned by a crawling service, with its markdown body."""

    source: ClassVar[SourceChannel] = SourceChannel.CRAWL

    url: str
    title: str = ""
    markdown: str = ""
    description: str = ""
    status_code: int | None = None

    @property
    def primary_text(self) -> str:
        return self.markdown

    def with_text(self, text: str) -> "CrawledPage":
        return dataclasses.replace(self, markdown=text)

    def record_fields(self) -> dict[str, Any]:
        title = self.title or "Untitled page"
        return {
            "title": title,
            "url": self.url,
            "summary": self.description or f"Content from {title}",
        }


@dataclass(frozen=True)
class SearchResult:
    """A page returned by a search-index service, with extracted text and an
    optional generated summary and structured fields."""

    source: ClassVar[SourceChannel] = SourceChannel.SEARCH

    url: str
    title: str = ""
    text: str = ""
    summary: str | None = None
    section_heading: str | None = None
    date: str | None = None
    tags: tuple[str, ...] = ()
    source_type: str | None = None
    author: str | None = None
    id: str | None = None

    @property
    def primary_text(self) -> str:
        return self.text

    def with_text(self, text: str) -> "SearchResult":
        return dataclasses.replace(self, text=text)

    def record_fields(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "section_heading": self.section_heading,
            "date": self.date,
            "tags": list(self.tags),
            "source_type": self.source_type,
            "author": self.author,
        }


SourceItem = Union[CrawledPage, SearchResult]


@dataclass
class KnowledgeRecord:
    """
    A bounded-size segment of source content plus its provenance.

    The id is derived from the source url and chunk position, so ingesting
    the same page again overwrites its records rather than duplicating them.
    """

    id: str
    url: str
    content: str
    source: SourceChannel
    title: str = ""
    summary: str | None = None
    section_heading: str | None = None
    date: str | None = None
    tags: list[str] = field(default_factory=list)
    source_type: str | None = None
    author: str | None = None

    def store_metadata(self) -> dict[str, Any]:
        """The metadata subset written alongside the vector."""
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "summary": self.summary or "",
            "source": self.source.value,
        }

    def add_embedding(self, embedding: list[float]) -> "EmbeddedRecord":
        """Create a new EmbeddedRecord with the given embedding."""
        return EmbeddedRecord(
            **{f.name: getattr(self, f.name) for f in dataclasses.fields(self)},
            vector=embedding,
        )


@dataclass(kw_only=True)
class EmbeddedRecord(KnowledgeRecord):
    """A record with its vector, ready to be written to a storage provider."""

    vector: list[float]


@dataclass(frozen=True)
class RetrievalMatch:
    """A record returned by a similarity query. Higher scores are closer."""

    id: str
    score: float
    metadata: dict[str, Any]

    @property
    def content(self) -> str:
        return self.metadata.get("content") or ""


@dataclass(frozen=True)
class UpsertResult:
    accepted: int = 0
    dropped: int = 0

    def __add__(self, other: "UpsertResult") -> "UpsertResult":
        return UpsertResult(
            accepted=self.accepted + other.accepted,
            dropped=self.dropped + other.dropped,
        )


@dataclass(frozen=True)
class SkippedItem:
    url: str
    reason: str


@dataclass
class IngestionReport:
    """Outcome of one ingestion run."""

    items_seen: int = 0
    items_processed: int = 0
    items_failed: int = 0
    records_built: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)
    upsert: UpsertResult = field(default_factory=UpsertResult)
    replaced: bool = False

    @property
    def success(self) -> bool:
        return self.upsert.accepted > 0
