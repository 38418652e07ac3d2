"""
app/container.py

Wiring for the long-lived objects of one API process.

The container is built in the FastAPI lifespan and stored on ``app.state``;
request dependencies and scheduler jobs read it from there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from app.config import (
    ImportSettings,
    RateLimitSettings,
    ScrapeCacheSettings,
    ScraperClientSettings,
    get_import_settings,
    get_rate_limit_settings,
    get_scrape_cache_settings,
    get_scraper_client_settings,
)
from app.scraping.cache import RequestDeduplicator, ScrapeResultCache
from app.scraping.listings_client import HTTPListingsFetcher, ListingsFetcher
from app.scraping.rate_limiter import FixedWindowRateLimiter
from app.services.batch_import_engine import BatchImportEngine
from app.services.job_tracker import JobTracker
from app.services.listing_scrape_service import ListingScrapeService
from app.services.material_import_service import (
    MaterialImportService,
    TaskExecutor,
    ThreadPoolTaskExecutor,
)
from app.storage.base import CatalogStore
from app.storage.sqlalchemy_storage import SQLAlchemyCatalogStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    import_settings: ImportSettings
    cache_settings: ScrapeCacheSettings
    tracker: JobTracker
    import_service: MaterialImportService
    scrape_service: ListingScrapeService | None
    scrape_cache: ScrapeResultCache[list[dict[str, Any]]]
    deduplicator: RequestDeduplicator[list[dict[str, Any]]]
    scrape_rate_limiter: FixedWindowRateLimiter
    import_rate_limiter: FixedWindowRateLimiter
    executor: TaskExecutor

    def shutdown(self) -> None:
        if isinstance(self.executor, ThreadPoolTaskExecutor):
            self.executor.shutdown(wait=True)


def build_container(
    *,
    session_factory: sessionmaker[Session],
    import_settings: ImportSettings | None = None,
    cache_settings: ScrapeCacheSettings | None = None,
    rate_limit_settings: RateLimitSettings | None = None,
    scraper_settings: ScraperClientSettings | None = None,
    executor: TaskExecutor | None = None,
    store: CatalogStore | None = None,
    fetcher: ListingsFetcher | None = None,
) -> ServiceContainer:
    """
    Build every service from settings. Collaborators may be injected for tests.

    The scrape service is only built when a fetcher is supplied or
    SCRAPER_SERVICE_URL is configured.
    """

    import_settings = import_settings or get_import_settings()
    cache_settings = cache_settings or get_scrape_cache_settings()
    rate_limit_settings = rate_limit_settings or get_rate_limit_settings()
    scraper_settings = scraper_settings or get_scraper_client_settings()

    tracker = JobTracker(session_factory=session_factory, batch_size=import_settings.batch_size)
    engine = BatchImportEngine(
        tracker=tracker,
        store=store or SQLAlchemyCatalogStore(session_factory=session_factory),
        chunk_delay_seconds=import_settings.chunk_delay_seconds,
        max_consecutive_chunk_failures=import_settings.max_consecutive_chunk_failures,
    )
    executor = executor or ThreadPoolTaskExecutor(import_settings.max_concurrent_jobs)
    import_service = MaterialImportService(tracker=tracker, engine=engine, executor=executor)

    scrape_cache: ScrapeResultCache[list[dict[str, Any]]] = ScrapeResultCache(
        ttl_seconds=cache_settings.ttl_seconds,
        max_size=cache_settings.max_size,
    )
    deduplicator: RequestDeduplicator[list[dict[str, Any]]] = RequestDeduplicator()
    scrape_rate_limiter = FixedWindowRateLimiter(
        window_seconds=rate_limit_settings.window_seconds,
        max_requests=rate_limit_settings.scrape_max_requests,
    )
    import_rate_limiter = FixedWindowRateLimiter(
        window_seconds=rate_limit_settings.window_seconds,
        max_requests=rate_limit_settings.import_max_requests,
    )

    if fetcher is None and scraper_settings.base_url:
        fetcher = HTTPListingsFetcher(
            base_url=scraper_settings.base_url,
            timeout_seconds=scraper_settings.timeout_seconds,
            api_key=scraper_settings.api_key,
        )

    scrape_service = None
    if fetcher is not None:
        scrape_service = ListingScrapeService(
            fetcher=fetcher,
            cache=scrape_cache,
            deduplicator=deduplicator,
            rate_limiter=scrape_rate_limiter,
            import_service=import_service,
            import_rate_limiter=import_rate_limiter,
        )
    else:
        logger.warning("SCRAPER_SERVICE_URL is not set; scrape endpoint disabled")

    return ServiceContainer(
        import_settings=import_settings,
        cache_settings=cache_settings,
        tracker=tracker,
        import_service=import_service,
        scrape_service=scrape_service,
        scrape_cache=scrape_cache,
        deduplicator=deduplicator,
        scrape_rate_limiter=scrape_rate_limiter,
        import_rate_limiter=import_rate_limiter,
        executor=executor,
    )
