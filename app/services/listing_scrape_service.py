"""
Scrape trigger: throttle, serve from cache, collapse duplicate in-flight
requests, fetch, and optionally hand the listings to the import pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from app.domain.material_import import ImportOptions
from app.logging_utils import log_event
from app.scraping.cache import RequestDeduplicator, ScrapeResultCache, build_cache_key
from app.scraping.listings_client import ListingsFetcher
from app.scraping.rate_limiter import FixedWindowRateLimiter
from app.services.material_import_service import ImportAccepted, MaterialImportService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapeResult:
    cache_key: str
    cached: bool
    listings: list[dict[str, Any]]
    job: ImportAccepted | None = None

    @property
    def count(self) -> int:
        return len(self.listings)


class ListingScrapeService:
    def __init__(
        self,
        *,
        fetcher: ListingsFetcher,
        cache: ScrapeResultCache[list[dict[str, Any]]],
        deduplicator: RequestDeduplicator[list[dict[str, Any]]],
        rate_limiter: FixedWindowRateLimiter,
        import_service: MaterialImportService | None = None,
        import_rate_limiter: FixedWindowRateLimiter | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._deduplicator = deduplicator
        self._rate_limiter = rate_limiter
        self._import_service = import_service
        self._import_rate_limiter = import_rate_limiter

    def scrape(
        self,
        *,
        owner_id: str,
        supplier: str,
        category: str | None = None,
        urls: Sequence[str] | None = None,
        import_results: bool = False,
        options: ImportOptions | Mapping[str, Any] | None = None,
    ) -> ScrapeResult:
        """
        Raises RateLimitExceeded before any work (the import limit also
        applies when ``import_results`` is set), UpstreamFetchError when the
        scraper fails (nothing is cached), and NoValidRecordsError when an
        import was requested but no listing survived validation.
        """

        self._rate_limiter.check(owner_id)
        if import_results and self._import_rate_limiter is not None:
            self._import_rate_limiter.check(owner_id)

        key = build_cache_key(supplier, category, urls)
        listings = self._cache.get(key)
        cached = listings is not None
        if listings is None:
            listings = self._deduplicator.deduplicate(
                key,
                lambda: self._fetcher.fetch_listings(
                    supplier,
                    category=category,
                    urls=list(urls) if urls else None,
                ),
            )
            self._cache.set(key, listings)

        log_event(
            logger,
            logging.INFO,
            "scrape_served",
            owner_id=owner_id,
            cache_key=key,
            cached=cached,
            listing_count=len(listings),
        )

        job = None
        if import_results and self._import_service is not None and listings:
            job = self._import_service.trigger_import(
                owner_id=owner_id,
                records=listings,
                source=supplier,
                options=options,
            )

        return ScrapeResult(cache_key=key, cached=cached, listings=list(listings), job=job)

