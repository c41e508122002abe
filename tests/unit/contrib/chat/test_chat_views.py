import json
from unittest import mock

import pytest
from django.test import RequestFactory
from openai.types.chat import ChatCompletion, ChatCompletionChunk

from django_site_rag.contrib.chat.views import ChatCompletionsView
from django_site_rag.contrib.index.embedding import EmbeddingError
from django_site_rag.contrib.index.schema import RetrievalMatch
from testapp.indexes import FaqIndex

URL = "/rag/faq/chat/completions"

MATCHES = [
    RetrievalMatch(
        id="https://www.example.com/support/faq-chunk0",
        score=0.9,
        metadata={"content": "There is no annual fee and no origination fee."},
    )
]


def make_completion(content):
    return ChatCompletion.model_validate(
        {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 1700000000,
            "model": "mock-chat",
            "choices": [
                {
                    "index": 0,
                    "finish_reason": "stop",
                    "message": {"role": "assistant", "content": content},
                }
            ],
        }
    )


def make_chunk(content):
    return ChatCompletionChunk.model_validate(
        {
            "id": "chatcmpl-1",
            "object": "chat.completion.chunk",
            "created": 1700000000,
            "model": "mock-chat",
            "choices": [{"index": 0, "delta": {"content": content}}],
        }
    )


def post_json(client, data):
    return client.post(URL, data=json.dumps(data), content_type="application/json")


def question(content="Is there an annual fee?", **options):
    return {"messages": [{"role": "user", "content": content}], **options}


@pytest.fixture
def search():
    with mock.patch.object(FaqIndex, "search", return_value=MATCHES) as search:
        yield search


@pytest.fixture
def completion():
    with mock.patch.object(FaqIndex.chat_service, "completion") as completion:
        yield completion


class TestChatCompletions:
    def test_answer(self, client, search, completion):
        completion.return_value = make_completion("There is no annual fee.")

        response = post_json(client, question(max_tokens=100, temperature=0.2))

        assert response.status_code == 200
        data = response.json()
        assert data["object"] == "chat.completion"
        assert data["choices"][0]["message"]["content"] == "There is no annual fee."

        search.assert_called_once_with("Is there an annual fee?", top_k=5)
        messages = completion.call_args.args[0]
        assert messages == [
            {
                "role": "user",
                "content": (
                    "Answer the question based on the following context: "
                    "There is no annual fee and no origination fee.\n\n"
                    "Question: Is there an annual fee?\n"
                    "Answer:"
                ),
            }
        ]
        assert completion.call_args.kwargs == {
            "max_tokens": 100,
            "temperature": 0.2,
            "stream": False,
        }

    def test_stream(self, client, search, completion):
        completion.return_value = iter(
            [make_chunk("There is "), make_chunk("no annual fee.")]
        )

        response = post_json(client, question(stream=True))

        assert response.status_code == 200
        assert response["Content-Type"] == "text/event-stream"
        assert response["Cache-Control"] == "no-cache"
        assert response["X-Accel-Buffering"] == "no"

        body = b"".join(response.streaming_content).decode()
        events = body.split("\n\n")
        assert events[-1] == ""
        assert events[-2] == "data: [DONE]"
        deltas = [json.loads(event.removeprefix("data: ")) for event in events[:-2]]
        assert [d["choices"][0]["delta"]["content"] for d in deltas] == [
            "There is ",
            "no annual fee.",
        ]
        assert deltas[0]["object"] == "chat.completion.chunk"

    def test_stream_error_event(self, client, search, completion):
        def chunks():
            yield make_chunk("There is ")
            raise ConnectionError("connection reset")

        completion.return_value = chunks()

        response = post_json(client, question(stream=True))
        body = b"".join(response.streaming_content).decode()

        assert body.endswith(
            'event: error\ndata: {"error": "connection reset", "code": "stream_error"}\n\n'
        )
        assert "[DONE]" not in body

    def test_client_disconnect_stops_stream(self, search, completion):
        pulled = []

        def chunks():
            for content in ["one ", "two ", "three"]:
                pulled.append(content)
                yield make_chunk(content)

        completion.return_value = chunks()
        request = RequestFactory().post(
            URL, data=json.dumps(question(stream=True)), content_type="application/json"
        )
        response = ChatCompletionsView.as_view(index_slug="faq")(request)

        content = iter(response.streaming_content)
        first = next(content)
        response.close()

        assert b"one " in first
        assert pulled == ["one "]

    def test_invalid_json(self, client, search):
        response = client.post(URL, data="{not json", content_type="application/json")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid JSON in request body",
            "code": "invalid_request",
        }

    @pytest.mark.parametrize(
        "payload",
        [
            {"messages": []},
            {"messages": [{"role": "user", "content": ""}]},
            {"messages": "hello"},
            [],
        ],
    )
    def test_invalid_request(self, client, search, completion, payload):
        response = post_json(client, payload)

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"
        search.assert_not_called()
        completion.assert_not_called()

    def test_empty_content_message(self, client, search, completion):
        response = post_json(client, question(""))

        assert response.json() == {
            "error": "No content in last message",
            "code": "invalid_request",
        }

    def test_unknown_index(self, search, completion):
        request = RequestFactory().post(
            "/", data=json.dumps(question()), content_type="application/json"
        )

        response = ChatCompletionsView.as_view(index_slug="missing")(request)

        assert response.status_code == 404
        assert json.loads(response.content) == {
            "error": "Index not found: missing",
            "code": "index_not_found",
        }

    @pytest.mark.parametrize("body", ["{not json", json.dumps({"messages": []})])
    def test_unknown_index_with_invalid_body(self, body):
        request = RequestFactory().post("/", data=body, content_type="application/json")

        response = ChatCompletionsView.as_view(index_slug="missing")(request)

        assert response.status_code == 404
        assert json.loads(response.content)["code"] == "index_not_found"

    def test_embedding_failure(self, client, search, completion):
        search.side_effect = EmbeddingError("provider down")

        response = post_json(client, question())

        assert response.status_code == 500
        assert "provider down" in response.json()["error"]
        completion.assert_not_called()

    def test_provider_failure(self, client, search, completion):
        completion.side_effect = RuntimeError("rate limited")

        response = post_json(client, question())

        assert response.status_code == 500
        assert response.json() == {"error": "rate limited"}

    def test_no_chat_service(self, client, search):
        with mock.patch.object(FaqIndex, "chat_service", None):
            response = post_json(client, question())

        assert response.status_code == 500

    @pytest.mark.parametrize("method", ["get", "put", "patch", "delete", "options"])
    def test_other_methods_not_found(self, client, method):
        response = getattr(client, method)(URL)

        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}

    def test_head_not_found(self, client):
        assert client.head(URL).status_code == 404


def test_chat_urls():
    from django.urls import reverse

    assert reverse("chat_completions_faq") == URL
