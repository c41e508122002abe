from .base import (
    IndexRegistry,
    KnowledgeIndex,
    registry,
)
from .builder import ChunkBuilder
from .chunking import (
    ChunkTransformer,
    SentenceChunkTransformer,
    chunk,
)
from .cleansing import (
    ContentCleanser,
    LLMContentCleanser,
    RegexContentCleanser,
    cleanser_for,
)
from .embedding import (
    CoreEmbeddingTransformer,
    EmbeddingError,
)
from .schema import (
    CrawledPage,
    KnowledgeRecord,
    RetrievalMatch,
    SearchResult,
    SourceChannel,
)
from .source import (
    ExaSource,
    FirecrawlSource,
    StaticSource,
)
from .storage import (
    StorageProvider,
)
from .text import normalize

__all__ = [
    "ChunkBuilder",
    "ChunkTransformer",
    "ContentCleanser",
    "CoreEmbeddingTransformer",
    "CrawledPage",
    "EmbeddingError",
    "ExaSource",
    "FirecrawlSource",
    "IndexRegistry",
    "KnowledgeIndex",
    "KnowledgeRecord",
    "LLMContentCleanser",
    "RegexContentCleanser",
    "RetrievalMatch",
    "SearchResult",
    "SentenceChunkTransformer",
    "SourceChannel",
    "StaticSource",
    "StorageProvider",
    "chunk",
    "cleanser_for",
    "normalize",
    "registry",
]
