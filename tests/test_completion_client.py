from __future__ import annotations

import json

import httpx

from city_relay.services.completion_client import CompletionClient, build_system_prompt

_URL = "https://upstream.test/api/v1/chat/completions"


def _client(handler, **kwargs) -> CompletionClient:  # type: ignore[no-untyped-def]
    return CompletionClient(
        api_key="sk-test",
        upstream_url=_URL,
        system_prompt=build_system_prompt("Bangalore"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_completion_client_sends_expected_payload_and_headers() -> None:
    seen: dict[str, object] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = dict(request.headers)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Namaskara!"}}]})

    client = _client(_handler, referer="http://localhost:5173", title="Bangalore Chatbot")
    result = client.complete(model="m1", message="Hello")

    assert result.ok is True
    assert result.reply == "Namaskara!"
    assert seen["url"] == _URL
    headers = seen["headers"]
    assert isinstance(headers, dict)
    assert headers["authorization"] == "Bearer sk-test"
    assert headers["http-referer"] == "http://localhost:5173"
    assert headers["x-title"] == "Bangalore Chatbot"
    body = seen["body"]
    assert isinstance(body, dict)
    assert body["model"] == "m1"
    assert body["messages"][0]["role"] == "system"
    assert "Bangalore" in body["messages"][0]["content"]
    assert body["messages"][1] == {"role": "user", "content": "Hello"}
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 1500
    assert body["top_p"] == 0.9
    assert body["frequency_penalty"] == 0
    assert body["presence_penalty"] == 0


def test_completion_client_reports_status_failure_with_upstream_message() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(429, json={"error": {"message": "Rate limit exceeded: free tier"}})

    result = _client(_handler).complete(model="m1", message="Hello")

    assert result.ok is False
    assert result.kind == "http_status"
    assert result.status_code == 429
    assert result.rate_limited is True
    assert result.error == "Model m1 failed: 429 - Rate limit exceeded: free tier"


def test_completion_client_falls_back_to_reason_phrase_without_error_body() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(503, text="<html>down</html>")

    result = _client(_handler).complete(model="m2", message="Hello")

    assert result.ok is False
    assert result.rate_limited is False
    assert result.error == "Model m2 failed: 503 - Service Unavailable"


def test_completion_client_treats_blank_content_as_empty_completion() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]})

    result = _client(_handler).complete(model="m1", message="Hello")

    assert result.ok is False
    assert result.kind == "empty_completion"
    assert result.status_code == 200


def test_completion_client_treats_missing_choices_as_empty_completion() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json={"id": "gen-1"})

    result = _client(_handler).complete(model="m1", message="Hello")

    assert result.ok is False
    assert result.kind == "empty_completion"


def test_completion_client_captures_transport_fault() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _client(_handler).complete(model="m1", message="Hello")

    assert result.ok is False
    assert result.kind == "transport"
    assert result.status_code is None
    assert result.error is not None
    assert "transport_error" in result.error


def test_completion_client_reports_unparseable_body_as_malformed() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, text="<html>gateway hiccup</html>")

    result = _client(_handler).complete(model="m1", message="Hello")

    assert result.ok is False
    assert result.kind == "malformed_body"
    assert result.status_code == 200
    assert result.rate_limited is False
    assert result.error is not None
    assert result.error.startswith("Model m1 returned a malformed body")
