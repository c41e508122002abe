from .base import ChatRequest, InvalidChatRequest
from .orchestrator import ANSWER_PROMPT, RetrievalAugmentedAnswerer
from .streaming import AnswerStream, StreamEvent, StreamEventType

__all__ = [
    "ANSWER_PROMPT",
    "AnswerStream",
    "ChatRequest",
    "InvalidChatRequest",
    "RetrievalAugmentedAnswerer",
    "StreamEvent",
    "StreamEventType",
]
