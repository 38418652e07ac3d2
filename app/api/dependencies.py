"""
app/api/dependencies.py

Shared FastAPI dependencies: caller identity, service lookup and throttling.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request, status

from app.container import ServiceContainer
from app.scraping.rate_limiter import FixedWindowRateLimiter, RateLimitExceeded
from app.services.listing_scrape_service import ListingScrapeService
from app.services.material_import_service import MaterialImportService

USER_ID_HEADER = "X-User-Id"


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up.",
        )
    return container


def get_caller_identity(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """
    Resolve the authenticated caller. Authentication itself happens upstream;
    the gateway forwards the verified user id in a header.
    """

    identity = (x_user_id or "").strip()
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_ID_HEADER} header.",
        )
    return identity


def get_import_service(
    container: ServiceContainer = Depends(get_container),
) -> MaterialImportService:
    return container.import_service


def get_scrape_service(
    container: ServiceContainer = Depends(get_container),
) -> ListingScrapeService:
    if container.scrape_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scraper service is not configured.",
        )
    return container.scrape_service


def rate_limit_error(exc: RateLimitExceeded) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Rate limit exceeded. Try again in {exc.retry_after} seconds.",
        headers={
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
        },
    )


def _enforce(limiter: FixedWindowRateLimiter, identity: str) -> None:
    try:
        limiter.check(identity)
    except RateLimitExceeded as exc:
        raise rate_limit_error(exc) from exc


def enforce_import_rate_limit(
    identity: str = Depends(get_caller_identity),
    container: ServiceContainer = Depends(get_container),
) -> str:
    _enforce(container.import_rate_limiter, identity)
    return identity
