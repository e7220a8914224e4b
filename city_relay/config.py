from __future__ import annotations

import os
from dataclasses import dataclass, field

from city_relay.errors import ConfigError

DEFAULT_MODELS: tuple[str, ...] = (
    "microsoft/phi-3-mini-128k-instruct:free",
    "meta-llama/llama-3.2-3b-instruct:free",
    "qwen/qwen-2-7b-instruct:free",
    "google/gemma-2-9b-it:free",
)
DEFAULT_UPSTREAM_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_CORS_ORIGINS: tuple[str, ...] = ("http://localhost:5173", "http://localhost:3000")


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = 0.7
    max_tokens: int = 1500
    top_p: float = 0.9
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0


@dataclass(frozen=True)
class RelaySettings:
    api_key: str
    models: tuple[str, ...] = DEFAULT_MODELS
    upstream_url: str = DEFAULT_UPSTREAM_URL
    host: str = "0.0.0.0"
    port: int = 5000
    environment: str = "production"
    rate_limit_window_sec: float = 60.0
    rate_limit_max_requests: int = 10
    rate_limit_sweep_sec: float = 300.0
    upstream_timeout_sec: float = 60.0
    city: str = "Bangalore"
    app_referer: str | None = "http://localhost:5173"
    app_title: str | None = "Bangalore Chatbot"
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    trust_proxy: bool = False
    max_message_chars: int = 5000
    generation: GenerationParams = field(default_factory=GenerationParams)

    def __post_init__(self) -> None:
        if not (self.api_key or "").strip():
            raise ConfigError("OPENROUTER_API_KEY not found in environment variables")
        if not self.models:
            raise ConfigError("model roster must contain at least one model")

    @property
    def expose_error_details(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> RelaySettings:
        return cls(
            api_key=os.getenv("OPENROUTER_API_KEY", "").strip(),
            models=_parse_csv(os.getenv("RELAY_MODELS"), default=DEFAULT_MODELS),
            upstream_url=os.getenv("RELAY_UPSTREAM_URL", "").strip() or DEFAULT_UPSTREAM_URL,
            host=os.getenv("RELAY_HOST", "").strip() or "0.0.0.0",
            port=_parse_int(os.getenv("PORT"), default=5000),
            environment=(os.getenv("RELAY_ENV") or "production").strip().lower(),
            rate_limit_window_sec=max(
                _parse_float(os.getenv("RELAY_RATE_LIMIT_WINDOW_SEC"), default=60.0),
                1.0,
            ),
            rate_limit_max_requests=max(
                _parse_int(os.getenv("RELAY_RATE_LIMIT_MAX_REQUESTS"), default=10),
                1,
            ),
            rate_limit_sweep_sec=max(
                _parse_float(os.getenv("RELAY_RATE_LIMIT_SWEEP_SEC"), default=300.0),
                1.0,
            ),
            upstream_timeout_sec=max(
                _parse_float(os.getenv("RELAY_UPSTREAM_TIMEOUT_SEC"), default=60.0),
                1.0,
            ),
            city=os.getenv("RELAY_CITY", "").strip() or "Bangalore",
            app_referer=_optional(os.getenv("RELAY_APP_REFERER", "http://localhost:5173")),
            app_title=_optional(os.getenv("RELAY_APP_TITLE", "Bangalore Chatbot")),
            cors_origins=cors_origins_from_env(),
            trust_proxy=_parse_bool(os.getenv("RELAY_TRUST_PROXY"), default=False),
            max_message_chars=max(
                _parse_int(os.getenv("RELAY_MAX_MESSAGE_CHARS"), default=5000),
                1,
            ),
        )


def cors_origins_from_env() -> tuple[str, ...]:
    return _parse_csv(os.getenv("RELAY_CORS_ORIGINS"), default=DEFAULT_CORS_ORIGINS)


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _parse_csv(value: str | None, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


def _parse_int(value: str | None, *, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: str | None, *, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default
