import json
import logging
from typing import TYPE_CHECKING, Any, Iterator

from django.http import JsonResponse, StreamingHttpResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from .base import ChatRequest, ChatRequestException, InvalidChatRequest
from .orchestrator import RetrievalAugmentedAnswerer
from .streaming import AnswerStream, StreamEventType

if TYPE_CHECKING:
    from django_site_rag.contrib.index import KnowledgeIndex

logger = logging.getLogger(__name__)


class IndexNotFound(ChatRequestException):
    code = "index_not_found"


def to_json_data(obj) -> Any:
    """Provider response objects are pydantic models, plain data passes through."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", exclude_none=True)
    return obj


def sse_events(stream: AnswerStream) -> Iterator[str]:
    """Encode answer events as server-sent events.

    Closing this generator (the client went away) cancels the stream.
    """
    try:
        for event in stream:
            if event.type is StreamEventType.DELTA:
                yield f"data: {json.dumps(to_json_data(event.chunk))}\n\n"
            elif event.type is StreamEventType.DONE:
                yield "data: [DONE]\n\n"
            else:
                error_data = json.dumps({"error": event.error, "code": "stream_error"})
                yield f"event: error\ndata: {error_data}\n\n"
    finally:
        stream.cancel()


@method_decorator(csrf_exempt, name="dispatch")
class ChatCompletionsView(View):
    """
    OpenAI-style chat completions grounded in a knowledge index.

    Expected JSON payload:
    {
        "messages": [{"role": "user", "content": "What are your rates?"}],
        "max_tokens": 150,
        "temperature": 0.7,
        "stream": false
    }
    """

    index_slug: str = ""
    # Every other method, OPTIONS included, gets the 404 response
    http_method_names = ["post"]

    def http_method_not_allowed(self, request, *args, **kwargs):
        return JsonResponse({"message": "Not Found"}, status=404)

    def post(self, request):
        try:
            index = self._get_index()
        except IndexNotFound as e:
            return JsonResponse(
                {"error": f"Index not found: {self.index_slug}", "code": e.code},
                status=404,
            )

        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            return JsonResponse(
                {"error": "Invalid JSON in request body", "code": "invalid_request"},
                status=400,
            )

        try:
            chat_request = ChatRequest.from_payload(data)
            chat_request.validate()
        except InvalidChatRequest as e:
            return JsonResponse({"error": str(e), "code": e.code}, status=400)

        try:
            answerer = self.get_answerer(index)
            if chat_request.stream:
                return self._stream_response(answerer.stream(chat_request))

            completion = answerer.answer(chat_request)
            return JsonResponse(to_json_data(completion))
        except Exception as e:
            logger.exception("Error in chat completions")
            return JsonResponse({"error": str(e)}, status=500)

    def get_answerer(self, index: "KnowledgeIndex") -> RetrievalAugmentedAnswerer:
        if index.chat_service is None:
            raise ValueError(f"Index '{self.index_slug}' has no chat service")
        return RetrievalAugmentedAnswerer(
            index=index, llm_service=index.chat_service, top_k=index.get_top_k()
        )

    def _stream_response(self, stream: AnswerStream) -> StreamingHttpResponse:
        response = StreamingHttpResponse(
            sse_events(stream), content_type="text/event-stream"
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response

    def _get_index(self) -> "KnowledgeIndex":
        from django_site_rag.contrib.index import registry

        try:
            return registry.get(self.index_slug)()
        except KeyError as e:
            raise IndexNotFound from e
