from __future__ import annotations

from typing import Any

import httpx


class RelayClientError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RelayClient:
    """HTTP client for the relay's /chat endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_sec: float = 90.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout=max(float(timeout_sec), 1.0)),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RelayClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def send(self, message: str) -> str:
        try:
            response = self._client.post(f"{self._base_url}/chat", json={"message": message})
        except httpx.HTTPError as exc:
            raise RelayClientError(f"relay_unreachable:{exc}") from exc

        body = _json_body(response)
        if response.status_code != 200:
            error = body.get("error") if isinstance(body, dict) else None
            raise RelayClientError(
                str(error or "Failed to get response"),
                status_code=response.status_code,
            )
        reply = body.get("reply") if isinstance(body, dict) else None
        if not isinstance(reply, str):
            raise RelayClientError("relay_invalid_response", status_code=response.status_code)
        return reply

    def health(self) -> dict[str, Any]:
        try:
            response = self._client.get(f"{self._base_url}/health")
        except httpx.HTTPError as exc:
            raise RelayClientError(f"relay_unreachable:{exc}") from exc
        body = _json_body(response)
        if response.status_code != 200 or not isinstance(body, dict):
            raise RelayClientError("relay_unhealthy", status_code=response.status_code)
        return body


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
