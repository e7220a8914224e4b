from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import monotonic

import httpx

from city_relay.config import RelaySettings
from city_relay.services.completion_client import CompletionClient, build_system_prompt
from city_relay.services.model_fallback import ModelCursor, ModelFallbackRelay
from city_relay.services.rate_limiter import SlidingWindowRateLimiter


@dataclass
class ServiceContainer:
    settings: RelaySettings
    rate_limiter: SlidingWindowRateLimiter
    completion_client: CompletionClient
    relay: ModelFallbackRelay

    def close(self) -> None:
        self.completion_client.close()


def build_container(
    settings: RelaySettings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    clock: Callable[[], float] = monotonic,
) -> ServiceContainer:
    settings = settings or RelaySettings.from_env()
    completion_client = CompletionClient(
        api_key=settings.api_key,
        upstream_url=settings.upstream_url,
        system_prompt=build_system_prompt(settings.city),
        timeout_sec=settings.upstream_timeout_sec,
        referer=settings.app_referer,
        title=settings.app_title,
        generation=settings.generation,
        transport=transport,
    )
    return ServiceContainer(
        settings=settings,
        rate_limiter=SlidingWindowRateLimiter(
            window_sec=settings.rate_limit_window_sec,
            max_requests=settings.rate_limit_max_requests,
            sweep_interval_sec=settings.rate_limit_sweep_sec,
            clock=clock,
        ),
        completion_client=completion_client,
        relay=ModelFallbackRelay(
            models=settings.models,
            backend=completion_client,
            cursor=ModelCursor(size=len(settings.models)),
        ),
    )
