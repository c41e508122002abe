from dataclasses import dataclass, field
from typing import Any

from django_site_rag.conf import get_setting


class ChatRequestException(Exception):
    code = "chat_error"


class InvalidChatRequest(ChatRequestException):
    code = "invalid_request"


@dataclass
class ChatRequest:
    """A chat-style request: ordered role/content turns plus generation options."""

    messages: list[dict[str, Any]]
    max_tokens: int = field(default_factory=lambda: get_setting("MAX_TOKENS"))
    temperature: float = field(default_factory=lambda: get_setting("TEMPERATURE"))
    stream: bool = False

    @classmethod
    def from_payload(cls, data: Any) -> "ChatRequest":
        """Build a request from a decoded JSON body, using defaults for
        missing or null options."""
        if not isinstance(data, dict):
            raise InvalidChatRequest("Request body must be a JSON object")

        messages = data.get("messages")
        if not isinstance(messages, list) or not all(
            isinstance(message, dict) for message in messages
        ):
            raise InvalidChatRequest("messages must be a list of objects")

        options = {
            key: data[key]
            for key in ("max_tokens", "temperature")
            if data.get(key) is not None
        }
        return cls(messages=messages, stream=bool(data.get("stream")), **options)

    @property
    def latest_message(self) -> dict[str, Any] | None:
        return self.messages[-1] if self.messages else None

    @property
    def query(self) -> str:
        """The content of the latest message, or an empty string."""
        message = self.latest_message
        content = message.get("content") if message else None
        return content if isinstance(content, str) else ""

    def validate(self):
        if not self.query.strip():
            raise InvalidChatRequest("No content in last message")
