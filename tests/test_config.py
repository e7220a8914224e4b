import pytest

from city_relay.config import DEFAULT_MODELS, DEFAULT_UPSTREAM_URL, RelaySettings
from city_relay.errors import ConfigError

_RELAY_ENV_VARS = (
    "OPENROUTER_API_KEY",
    "RELAY_MODELS",
    "RELAY_UPSTREAM_URL",
    "PORT",
    "RELAY_ENV",
    "RELAY_RATE_LIMIT_WINDOW_SEC",
    "RELAY_RATE_LIMIT_MAX_REQUESTS",
    "RELAY_CORS_ORIGINS",
    "RELAY_TRUST_PROXY",
    "RELAY_APP_TITLE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_settings_require_api_key() -> None:
    with pytest.raises(ConfigError):
        RelaySettings.from_env()


def test_settings_reject_blank_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "   ")

    with pytest.raises(ConfigError):
        RelaySettings.from_env()


def test_settings_reject_empty_roster() -> None:
    with pytest.raises(ConfigError):
        RelaySettings(api_key="sk-test", models=())


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")

    settings = RelaySettings.from_env()

    assert settings.models == DEFAULT_MODELS
    assert settings.upstream_url == DEFAULT_UPSTREAM_URL
    assert settings.port == 5000
    assert settings.rate_limit_window_sec == 60.0
    assert settings.rate_limit_max_requests == 10
    assert settings.expose_error_details is False
    assert settings.cors_origins == ("http://localhost:5173", "http://localhost:3000")
    assert settings.generation.max_tokens == 1500


def test_settings_parse_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setenv("RELAY_MODELS", " m1 , m2,,m3 ")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RELAY_ENV", "Development")
    monkeypatch.setenv("RELAY_RATE_LIMIT_MAX_REQUESTS", "3")
    monkeypatch.setenv("RELAY_TRUST_PROXY", "yes")
    monkeypatch.setenv("RELAY_APP_TITLE", "")

    settings = RelaySettings.from_env()

    assert settings.models == ("m1", "m2", "m3")
    assert settings.port == 8080
    assert settings.expose_error_details is True
    assert settings.rate_limit_max_requests == 3
    assert settings.trust_proxy is True
    assert settings.app_title is None


def test_settings_fall_back_on_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setenv("PORT", "not-a-port")
    monkeypatch.setenv("RELAY_RATE_LIMIT_WINDOW_SEC", "soon")
    monkeypatch.setenv("RELAY_RATE_LIMIT_MAX_REQUESTS", "0")

    settings = RelaySettings.from_env()

    assert settings.port == 5000
    assert settings.rate_limit_window_sec == 60.0
    assert settings.rate_limit_max_requests == 1
