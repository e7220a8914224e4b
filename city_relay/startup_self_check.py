from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from city_relay.config import RelaySettings
from city_relay.schemas import AVAILABLE_ENDPOINTS


@dataclass(frozen=True)
class StartupSelfCheckResult:
    model_count: int
    issues: list[str]
    development_mode: bool = False


def run_startup_self_check(settings: RelaySettings, logger: logging.Logger) -> StartupSelfCheckResult:
    result = analyze_settings(settings)

    base = f"http://localhost:{settings.port}"
    logger.info("relay_startup listen=%s:%s", settings.host, settings.port)
    for path in AVAILABLE_ENDPOINTS:
        logger.info("relay_startup endpoint=%s%s", base, path)
    logger.info("relay_startup cors_origins=%s", ",".join(settings.cors_origins))
    for position, model in enumerate(settings.models, start=1):
        logger.info("relay_startup model[%s]=%s", position, model)
    logger.info(
        "relay_startup rate_limit=%s/%.0fs per caller",
        settings.rate_limit_max_requests,
        settings.rate_limit_window_sec,
    )

    if "duplicate_models" in result.issues:
        logger.warning("startup_self_check anomaly=duplicate_models detail=roster_has_repeats")
    if "insecure_upstream_url" in result.issues:
        logger.warning(
            "startup_self_check anomaly=insecure_upstream_url url=%s",
            settings.upstream_url,
        )
    if result.development_mode:
        logger.warning("startup_self_check mode=development detail=error_details_exposed")
    if not result.issues:
        logger.info("startup_self_check ok model_count=%s", result.model_count)
    return result


def analyze_settings(settings: RelaySettings) -> StartupSelfCheckResult:
    issues: list[str] = []
    if len(set(settings.models)) != len(settings.models):
        issues.append("duplicate_models")
    parsed = urlparse(settings.upstream_url)
    if parsed.scheme != "https" and parsed.hostname not in {"localhost", "127.0.0.1"}:
        issues.append("insecure_upstream_url")
    return StartupSelfCheckResult(
        model_count=len(settings.models),
        issues=issues,
        development_mode=settings.expose_error_details,
    )
