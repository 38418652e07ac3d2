"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ImportSettings:
    """
    Runtime settings for the material import pipeline.
    """

    batch_size: int = 50
    chunk_delay_seconds: float = 0.1
    max_concurrent_jobs: int = 2
    max_consecutive_chunk_failures: int = 3
    stale_job_timeout_seconds: float = 900.0


@dataclass(frozen=True)
class ScrapeCacheSettings:
    """
    Scrape result cache sizing and expiry.
    """

    ttl_seconds: float = 900.0
    max_size: int = 1000
    prune_interval_seconds: int = 300


@dataclass(frozen=True)
class RateLimitSettings:
    """
    Fixed-window limits for the scrape and import triggers.
    """

    window_seconds: float = 60.0
    scrape_max_requests: int = 10
    import_max_requests: int = 20


@dataclass(frozen=True)
class ScraperClientSettings:
    """
    Upstream scraper service connection settings.
    """

    base_url: str | None = None
    timeout_seconds: float = 30.0
    api_key: str | None = None


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import settings from environment variables.
    """

    return ImportSettings(
        batch_size=max(1, _get_int_env("IMPORT_BATCH_SIZE", 50)),
        chunk_delay_seconds=max(0.0, _get_float_env("IMPORT_CHUNK_DELAY_SECONDS", 0.1)),
        max_concurrent_jobs=max(1, _get_int_env("IMPORT_MAX_CONCURRENT_JOBS", 2)),
        max_consecutive_chunk_failures=max(0, _get_int_env("IMPORT_MAX_CONSECUTIVE_CHUNK_FAILURES", 3)),
        stale_job_timeout_seconds=max(60.0, _get_float_env("IMPORT_STALE_JOB_TIMEOUT_SECONDS", 900.0)),
    )


@lru_cache(maxsize=1)
def get_scrape_cache_settings() -> ScrapeCacheSettings:
    """
    Return cached scrape cache settings from environment variables.
    """

    return ScrapeCacheSettings(
        ttl_seconds=max(1.0, _get_float_env("SCRAPE_CACHE_TTL_SECONDS", 900.0)),
        max_size=max(1, _get_int_env("SCRAPE_CACHE_MAX_SIZE", 1000)),
        prune_interval_seconds=max(1, _get_int_env("SCRAPE_CACHE_PRUNE_INTERVAL_SECONDS", 300)),
    )


@lru_cache(maxsize=1)
def get_rate_limit_settings() -> RateLimitSettings:
    """
    Return cached rate limit settings from environment variables.
    """

    return RateLimitSettings(
        window_seconds=max(1.0, _get_float_env("RATE_LIMIT_WINDOW_SECONDS", 60.0)),
        scrape_max_requests=max(1, _get_int_env("RATE_LIMIT_SCRAPE_MAX_REQUESTS", 10)),
        import_max_requests=max(1, _get_int_env("RATE_LIMIT_IMPORT_MAX_REQUESTS", 20)),
    )


@lru_cache(maxsize=1)
def get_scraper_client_settings() -> ScraperClientSettings:
    """
    Return upstream scraper settings from environment variables.
    """

    return ScraperClientSettings(
        base_url=_get_optional_str_env("SCRAPER_SERVICE_URL"),
        timeout_seconds=max(1.0, _get_float_env("SCRAPER_TIMEOUT_SECONDS", 30.0)),
        api_key=_get_optional_str_env("SCRAPER_API_KEY"),
    )


_NUMERIC_ENV_VARS: tuple[tuple[str, type], ...] = (
    ("IMPORT_BATCH_SIZE", int),
    ("IMPORT_CHUNK_DELAY_SECONDS", float),
    ("IMPORT_MAX_CONCURRENT_JOBS", int),
    ("IMPORT_MAX_CONSECUTIVE_CHUNK_FAILURES", int),
    ("IMPORT_STALE_JOB_TIMEOUT_SECONDS", float),
    ("SCRAPE_CACHE_TTL_SECONDS", float),
    ("SCRAPE_CACHE_MAX_SIZE", int),
    ("SCRAPE_CACHE_PRUNE_INTERVAL_SECONDS", int),
    ("RATE_LIMIT_WINDOW_SECONDS", float),
    ("RATE_LIMIT_SCRAPE_MAX_REQUESTS", int),
    ("RATE_LIMIT_IMPORT_MAX_REQUESTS", int),
    ("SCRAPER_TIMEOUT_SECONDS", float),
)


def validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle. Tuning variables fall
    back to defaults when absent but must parse when present.
    """

    _load_env_once()

    errors: list[str] = []

    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not (database_url or cloud_database_url or local_database_url):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    for name, parser in _NUMERIC_ENV_VARS:
        raw_value = os.getenv(name)
        if raw_value is None:
            continue
        try:
            parser(raw_value)
        except ValueError:
            errors.append(f"{name}='{raw_value}' is not a valid {parser.__name__}.")

    scraper_url = os.getenv("SCRAPER_SERVICE_URL", "").strip()
    if scraper_url and not scraper_url.startswith(("http://", "https://")):
        errors.append(f"SCRAPER_SERVICE_URL='{scraper_url}' must be an http(s) URL.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
