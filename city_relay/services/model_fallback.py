from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

from city_relay.errors import ExhaustionError
from city_relay.services.completion_client import CompletionResult

logger = logging.getLogger(__name__)

NO_USABLE_COMPLETION = "no model returned a usable completion"


class CompletionBackend(Protocol):
    def complete(self, *, model: str, message: str) -> CompletionResult: ...


class ModelCursor:
    """Process-wide index of the last model that answered successfully."""

    def __init__(self, *, size: int, start: int = 0) -> None:
        if size < 1:
            raise ValueError("cursor size must be >= 1")
        self._size = size
        self._index = start % size
        self._lock = Lock()

    def get(self) -> int:
        with self._lock:
            return self._index

    def set(self, index: int) -> None:
        with self._lock:
            self._index = index % self._size


@dataclass(frozen=True)
class RelayReply:
    reply: str
    model: str
    index: int
    attempts: int


class ModelFallbackRelay:
    def __init__(
        self,
        *,
        models: Sequence[str],
        backend: CompletionBackend,
        cursor: ModelCursor | None = None,
    ) -> None:
        if not models:
            raise ValueError("model roster must not be empty")
        self._models = tuple(models)
        self._backend = backend
        self._cursor = cursor or ModelCursor(size=len(self._models))

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    @property
    def cursor(self) -> ModelCursor:
        return self._cursor

    def candidate_order(self, start: int | None = None) -> list[int]:
        base = self._cursor.get() if start is None else start
        size = len(self._models)
        return [(base + attempt) % size for attempt in range(size)]

    def relay(self, message: str, *, trace_id: str | None = None) -> RelayReply:
        last_failure: CompletionResult | None = None
        order = self.candidate_order()

        for attempt, index in enumerate(order):
            model = self._models[index]
            logger.info(
                "relay_model_attempt trace_id=%s model=%s attempt=%s preview=%r",
                trace_id,
                model,
                attempt,
                message[:50],
            )
            result = self._backend.complete(model=model, message=message)
            if result.ok and result.reply:
                self._cursor.set(index)
                logger.info(
                    "relay_model_success trace_id=%s model=%s attempt=%s",
                    trace_id,
                    model,
                    attempt,
                )
                return RelayReply(
                    reply=result.reply,
                    model=model,
                    index=index,
                    attempts=attempt + 1,
                )
            # parsed bodies without content are skipped but do not replace the captured failure
            if result.kind != "empty_completion":
                last_failure = result
            logger.warning(
                "relay_model_failed trace_id=%s model=%s kind=%s status=%s error=%s",
                trace_id,
                model,
                result.kind,
                result.status_code,
                (result.error or "")[:200],
            )

        busy = last_failure is not None and last_failure.rate_limited
        detail = last_failure.error if last_failure is not None else NO_USABLE_COMPLETION
        logger.error(
            "relay_exhausted trace_id=%s attempts=%s busy=%s last_error=%s",
            trace_id,
            len(order),
            busy,
            detail,
        )
        raise ExhaustionError(busy=busy, detail=detail, attempts=len(order))
