import re
from typing import Protocol

from django_site_rag.conf import get_setting

# A sentence is everything up to and including a run of terminators, or a
# trailing fragment with no terminator at all.
SENTENCE_RE = re.compile(r"[^.!?\n]*[.!?\n]+|[^.!?\n]+$")


class ChunkTransformer(Protocol):
    """Base class for chunking transformers which break a string into a list of strings."""

    def transform(self, text: "str") -> list["str"]:
        """Transform a string into chunks."""
        ...


def split_sentences(text: str) -> list[str]:
    return SENTENCE_RE.findall(text)


class SentenceChunkTransformer(ChunkTransformer):
    """Groups whole sentences into chunks of at most ``max_chars`` characters.

    Sentences are never split. A single sentence longer than ``max_chars``
    becomes a chunk of its own.
    """

    def __init__(self, max_chars: int | None = None):
        if max_chars is not None and max_chars <= 0:
            raise ValueError("max_chars must be a positive integer")
        self._max_chars = max_chars

    @property
    def max_chars(self) -> int:
        """Configured size, or ``SITE_RAG_CHUNK_SIZE`` read at chunking time."""
        return self._max_chars or get_setting("CHUNK_SIZE")

    def transform(self, text: str) -> list[str]:
        chunks = []
        current_chunk = ""

        for sentence in split_sentences(text):
            if current_chunk and len(current_chunk) + len(sentence) > self.max_chars:
                if current_chunk.strip():
                    chunks.append(current_chunk.strip())
                current_chunk = ""
            current_chunk += sentence

        if current_chunk.strip():
            chunks.append(current_chunk.strip())

        return chunks


def chunk(text: str, max_chars: int | None = None) -> list[str]:
    """Chunk ``text`` with a ``SentenceChunkTransformer``."""
    return SentenceChunkTransformer(max_chars=max_chars).transform(text)
