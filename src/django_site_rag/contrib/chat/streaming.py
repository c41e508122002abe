"""
Streaming of generated answers.

``AnswerStream`` wraps the provider's iterator of completion chunks and turns
it into a finite, single-pass sequence of ``StreamEvent``s for a consumer.
The consumer may cancel at any point, after which nothing more is pulled
from the provider.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

logger = logging.getLogger(__name__)

_END = object()


class StreamEventType(str, Enum):
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    type: StreamEventType
    content: str = ""
    chunk: Any = None
    error: str | None = None


def delta_content(chunk) -> str:
    """The text carried by a completion chunk, if any."""
    choices = getattr(chunk, "choices", None)
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None) or ""


class AnswerStream:
    def __init__(self, chunks: Iterator[Any]):
        self._chunks = chunks
        self._consumed = False
        self.cancelled = False
        self.finished = False
        self.content = ""

    def cancel(self):
        """Stop forwarding chunks and release the provider stream."""
        if self.finished or self.cancelled:
            return
        self.cancelled = True
        logger.info("Answer stream cancelled by consumer")
        close = getattr(self._chunks, "close", None)
        if callable(close):
            close()

    def __iter__(self) -> Iterator[StreamEvent]:
        if self._consumed:
            raise RuntimeError("An AnswerStream can only be iterated once")
        self._consumed = True
        return self._events()

    def _events(self) -> Iterator[StreamEvent]:
        try:
            yield from self._deltas()
        except GeneratorExit:
            self.cancel()
            raise
        except Exception as e:
            self.finished = True
            if self.cancelled:
                return
            logger.exception("Streaming error")
            yield StreamEvent(type=StreamEventType.ERROR, error=str(e))
            return

        self.finished = True
        if self.cancelled:
            return
        logger.info(f"Generated response: {self.content}")
        yield StreamEvent(type=StreamEventType.DONE)

    def _deltas(self) -> Iterator[StreamEvent]:
        chunks = iter(self._chunks)
        while not self.cancelled:
            chunk = next(chunks, _END)
            if chunk is _END:
                return
            content = delta_content(chunk)
            if not content:
                continue
            self.content += content
            if self.cancelled:
                return
            yield StreamEvent(type=StreamEventType.DELTA, content=content, chunk=chunk)
