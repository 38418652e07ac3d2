"""
Client for the upstream scraper that produces raw supplier listings.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import requests

from app.logging_utils import log_event

logger = logging.getLogger(__name__)


class UpstreamFetchError(RuntimeError):
    """
    Raised when the scraper could not produce listings for a request.
    """


class ListingsFetcher(Protocol):
    def fetch_listings(
        self,
        supplier: str,
        category: str | None = None,
        urls: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        ...


class HTTPListingsFetcher:
    """
    Calls the scraper service over HTTP.

    One timed attempt per call; failures surface as UpstreamFetchError and
    retrying is left to the next request.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._endpoint = base_url.rstrip("/") + "/listings"
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    def fetch_listings(
        self,
        supplier: str,
        category: str | None = None,
        urls: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        payload = {"supplier": supplier, "category": category, "urls": list(urls or [])}
        try:
            response = self._session.post(
                self._endpoint,
                json=payload,
                headers=self._headers,
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            log_event(
                logger,
                logging.WARNING,
                "listings_fetch_failed",
                supplier=supplier,
                category=category,
                error=str(exc),
            )
            raise UpstreamFetchError(f"Scraper request failed for supplier={supplier}: {exc}") from exc
        except ValueError as exc:
            raise UpstreamFetchError(f"Scraper returned invalid JSON for supplier={supplier}") from exc

        listings = body.get("listings") if isinstance(body, dict) else body
        if not isinstance(listings, list):
            raise UpstreamFetchError(f"Scraper response for supplier={supplier} has no listings array")

        log_event(
            logger,
            logging.INFO,
            "listings_fetched",
            supplier=supplier,
            category=category,
            url_count=len(payload["urls"]),
            listing_count=len(listings),
        )
        return [item for item in listings if isinstance(item, dict)]
