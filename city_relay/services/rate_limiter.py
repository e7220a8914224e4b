from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from time import monotonic

from city_relay.errors import RateLimitError

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Per-caller trailing-window limiter.
    Rejected attempts are never recorded, so a throttled caller regains
    budget as soon as its oldest accepted request leaves the window.
    """

    def __init__(
        self,
        *,
        window_sec: float = 60.0,
        max_requests: int = 10,
        sweep_interval_sec: float = 300.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._window_sec = max(float(window_sec), 0.001)
        self._max_requests = max(int(max_requests), 1)
        self._sweep_interval_sec = max(float(sweep_interval_sec), 0.0)
        self._clock = clock
        self._lock = Lock()
        self._ledger: dict[str, list[float]] = {}
        self._last_sweep_at = clock()

    @property
    def window_sec(self) -> float:
        return self._window_sec

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def acquire(self, caller_id: str) -> None:
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)
            recent = self._prune(self._ledger.get(caller_id, []), now)
            if len(recent) >= self._max_requests:
                self._ledger[caller_id] = recent
                retry_after = recent[0] + self._window_sec - now
                logger.info(
                    "rate_limit_rejected caller=%s count=%s retry_after=%.1fs",
                    caller_id,
                    len(recent),
                    retry_after,
                )
                raise RateLimitError(retry_after_sec=retry_after)
            recent.append(now)
            self._ledger[caller_id] = recent

    def remaining(self, caller_id: str) -> int:
        with self._lock:
            recent = self._prune(self._ledger.get(caller_id, []), self._clock())
            return max(self._max_requests - len(recent), 0)

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "tracked_callers": len(self._ledger),
                "window_sec": self._window_sec,
                "max_requests": self._max_requests,
            }

    def reset(self) -> None:
        with self._lock:
            self._ledger.clear()

    def _prune(self, timestamps: list[float], now: float) -> list[float]:
        return [ts for ts in timestamps if now - ts < self._window_sec]

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep_at < self._sweep_interval_sec:
            return
        self._last_sweep_at = now
        idle = [
            caller_id
            for caller_id, timestamps in self._ledger.items()
            if not self._prune(timestamps, now)
        ]
        for caller_id in idle:
            del self._ledger[caller_id]
        if idle:
            logger.debug("rate_limit_sweep evicted=%s", len(idle))
