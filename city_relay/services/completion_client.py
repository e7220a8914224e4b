from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from city_relay.config import GenerationParams

logger = logging.getLogger(__name__)

FailureKind = Literal["http_status", "malformed_body", "empty_completion", "transport"]


def build_system_prompt(city: str) -> str:
    return (
        f"You are a helpful assistant specializing in {city} city information. "
        f"Provide relevant and helpful information about {city} including tourist spots, "
        "local cuisine, tech parks, transportation, neighborhoods, education, events, "
        "and festivals. Keep responses concise and informative."
    )


@dataclass(frozen=True)
class CompletionResult:
    ok: bool
    model: str
    reply: str | None = None
    status_code: int | None = None
    error: str | None = None
    kind: FailureKind | None = None

    @property
    def rate_limited(self) -> bool:
        return self.kind == "http_status" and self.status_code == 429


class CompletionClient:
    """
    Single-shot client for an OpenAI-style chat completion endpoint.
    Never raises for upstream problems; every outcome is a CompletionResult.
    """

    def __init__(
        self,
        *,
        api_key: str,
        upstream_url: str,
        system_prompt: str,
        timeout_sec: float = 60.0,
        referer: str | None = None,
        title: str | None = None,
        generation: GenerationParams | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._upstream_url = upstream_url
        self._system_prompt = system_prompt
        self._generation = generation or GenerationParams()
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title
        self._client = httpx.Client(
            headers=headers,
            timeout=httpx.Timeout(timeout=max(float(timeout_sec), 0.5)),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def build_payload(self, *, model: str, message: str) -> dict[str, Any]:
        params = self._generation
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": message},
            ],
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "top_p": params.top_p,
            "frequency_penalty": params.frequency_penalty,
            "presence_penalty": params.presence_penalty,
        }

    def complete(self, *, model: str, message: str) -> CompletionResult:
        try:
            response = self._client.post(
                self._upstream_url,
                json=self.build_payload(model=model, message=message),
            )
        except httpx.HTTPError as exc:
            return CompletionResult(
                ok=False,
                model=model,
                error=f"Model {model} failed: transport_error:{exc}",
                kind="transport",
            )

        if not response.is_success:
            reason = _extract_error_message(response) or response.reason_phrase
            return CompletionResult(
                ok=False,
                model=model,
                status_code=response.status_code,
                error=f"Model {model} failed: {response.status_code} - {reason}",
                kind="http_status",
            )

        try:
            data = response.json()
        except ValueError as exc:
            return CompletionResult(
                ok=False,
                model=model,
                status_code=response.status_code,
                error=f"Model {model} returned a malformed body: {exc}",
                kind="malformed_body",
            )
        reply = _extract_reply_text(data)
        if reply is None:
            return CompletionResult(
                ok=False,
                model=model,
                status_code=response.status_code,
                error=f"Model {model} returned an empty completion",
                kind="empty_completion",
            )
        return CompletionResult(
            ok=True,
            model=model,
            reply=reply,
            status_code=response.status_code,
        )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _extract_error_message(response: httpx.Response) -> str | None:
    data = _json_body(response)
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if isinstance(error, str) and error.strip():
        return error.strip()
    return None


def _extract_reply_text(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content
    return None
