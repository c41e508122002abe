import logging
from typing import TYPE_CHECKING, Any

from django_site_rag.conf import get_setting
from django_site_rag.llm.prompt import Prompt

from .base import ChatRequest
from .streaming import AnswerStream

if TYPE_CHECKING:
    from django_site_rag.contrib.index import KnowledgeIndex, RetrievalMatch
    from django_site_rag.llm import LLMService

logger = logging.getLogger(__name__)


ANSWER_PROMPT = Prompt(
    "Answer the question based on the following context: {context}\n\n"
    "Question: {query}\n"
    "Answer:"
)


class RetrievalAugmentedAnswerer:
    """Answers chat requests from the records stored in a knowledge index.

    For each request: validate, embed the latest message, retrieve the
    closest records, ground the latest message in them and generate.
    """

    def __init__(
        self,
        *,
        index: "KnowledgeIndex",
        llm_service: "LLMService",
        top_k: int | None = None,
    ):
        self.index = index
        self.llm_service = llm_service
        self.top_k = top_k or get_setting("TOP_K")

    def retrieve(self, query: str) -> list["RetrievalMatch"]:
        """Closest records for the query, best first. Raises EmbeddingError
        if the query cannot be embedded."""
        matches = self.index.search(query, top_k=self.top_k)
        logger.info(
            f"Retrieved {len(matches)} matches, top score "
            f"{matches[0].score if matches else 0.0:.3f}"
        )
        return matches

    def build_context(self, matches: list["RetrievalMatch"]) -> str:
        return "\n".join(match.content for match in matches)

    def compose_prompt(self, *, context: str, query: str) -> str:
        return ANSWER_PROMPT.render_strict(context=context, query=query)

    def build_messages(self, request: ChatRequest, prompt: str) -> list[dict[str, Any]]:
        """The conversation with only the latest message's content replaced."""
        *history, latest = request.messages
        return [*history, {**latest, "content": prompt}]

    def prepare(self, request: ChatRequest) -> list[dict[str, Any]]:
        request.validate()
        query = request.query
        logger.info(f"Query: {query}")

        context = self.build_context(self.retrieve(query))
        prompt = self.compose_prompt(context=context, query=query)
        return self.build_messages(request, prompt)

    def answer(self, request: ChatRequest):
        """Generate the full completion for a request."""
        messages = self.prepare(request)
        logger.info(f"Creating completion for {len(messages)} messages")
        completion = self.llm_service.completion(
            messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            stream=False,
        )
        return completion

    def stream(self, request: ChatRequest) -> AnswerStream:
        """Start a streamed completion for a request.

        Validation, retrieval and opening the provider stream happen before
        this returns, so their failures raise here rather than mid-stream.
        """
        messages = self.prepare(request)
        logger.info(f"Creating streamed completion for {len(messages)} messages")
        chunks = self.llm_service.completion(
            messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            stream=True,
        )
        return AnswerStream(chunks)
