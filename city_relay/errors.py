from __future__ import annotations

from typing import Any

BUSY_MESSAGE = "All AI models are currently busy. Please try again in a few minutes."
UNAVAILABLE_MESSAGE = (
    "Sorry, I'm experiencing technical difficulties. Please try again in a moment."
)
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a minute before sending another message."
INTERNAL_ERROR_MESSAGE = "Internal server error"


class ConfigError(RuntimeError):
    """Raised when the relay cannot start with the given configuration."""


class RelayError(Exception):
    """Base for errors that are surfaced to the HTTP caller."""

    status_code = 500

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(RelayError):
    status_code = 400


class RateLimitError(RelayError):
    status_code = 429

    def __init__(self, *, retry_after_sec: float, message: str = RATE_LIMIT_MESSAGE) -> None:
        super().__init__(message)
        self.retry_after_sec = max(float(retry_after_sec), 0.0)


class ExhaustionError(RelayError):
    """Every model in the roster failed for one request."""

    def __init__(self, *, busy: bool, detail: str | None, attempts: int) -> None:
        super().__init__(BUSY_MESSAGE if busy else UNAVAILABLE_MESSAGE, detail=detail)
        self.busy = busy
        self.attempts = attempts
        self.status_code = 429 if busy else 500


def format_error(exc: Exception, *, expose_details: bool) -> dict[str, Any]:
    if isinstance(exc, RelayError):
        body: dict[str, Any] = {"error": exc.message}
        detail = exc.detail
    else:
        body = {"error": INTERNAL_ERROR_MESSAGE}
        detail = str(exc) or exc.__class__.__name__
    if expose_details and detail:
        body["details"] = detail
    return body
