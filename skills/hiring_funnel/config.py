"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from skills.hiring_funnel.cache import CACHE_TTL_SECONDS
from skills.hiring_funnel.scheduler import DEFAULT_BATCH_PAUSE_SECONDS, DEFAULT_BATCH_SIZE
from skills.hiring_funnel.sources.ats_http import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS

DEFAULT_ORG_ID = "c9e42850-b626-42bb-ac22-669df9596949"


def _first_env_value(*names: str) -> str:
    for name in names:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return ""


def _env_float(name: str, default: float, *, minimum: float = 0.0) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    api_base_url: str = DEFAULT_BASE_URL
    org_id: str = DEFAULT_ORG_ID
    request_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_pause_seconds: float = DEFAULT_BATCH_PAUSE_SECONDS
    max_requests_per_second: float = 10.0
    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    jobs_path: str = "jobs.json"


def load_settings() -> Settings:
    return Settings(
        api_base_url=_first_env_value("ATS_API_BASE_URL", "API_BASE_URL") or DEFAULT_BASE_URL,
        org_id=_first_env_value("ATS_ORG_ID") or DEFAULT_ORG_ID,
        request_timeout_seconds=_env_float("ATS_REQUEST_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, minimum=0.1),
        batch_size=_env_int("ATS_BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
        batch_pause_seconds=_env_float("ATS_BATCH_PAUSE_SECONDS", DEFAULT_BATCH_PAUSE_SECONDS),
        max_requests_per_second=_env_float("ATS_MAX_REQUESTS_PER_SECOND", 10.0),
        cache_ttl_seconds=_env_float("ATS_CACHE_TTL_SECONDS", CACHE_TTL_SECONDS, minimum=1.0),
        jobs_path=_first_env_value("ATS_JOBS_PATH") or "jobs.json",
    )
