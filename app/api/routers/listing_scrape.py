"""
Supplier listing scrape endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.dependencies import get_caller_identity, get_scrape_service, rate_limit_error
from app.api.routers.material_import import to_accepted_response
from app.domain.material_import import ImportOptions
from app.schemas.material_import import InvalidRecordResponse, NoValidRecordsResponse
from app.schemas.scrape import ScrapeImportJobResponse, ScrapeRequest, ScrapeResponse
from app.scraping.listings_client import UpstreamFetchError
from app.scraping.rate_limiter import RateLimitExceeded
from app.services.listing_scrape_service import ListingScrapeService
from app.services.material_import_service import NoValidRecordsError

router = APIRouter(tags=["listing-scrape"])


@router.post("/materials/scrape", response_model=ScrapeResponse)
def scrape_listings(
    payload: ScrapeRequest,
    owner_id: str = Depends(get_caller_identity),
    service: ListingScrapeService = Depends(get_scrape_service),
) -> ScrapeResponse:
    try:
        result = service.scrape(
            owner_id=owner_id,
            supplier=payload.supplier,
            category=payload.category,
            urls=payload.urls,
            import_results=payload.import_results,
            options=ImportOptions(
                update_existing=payload.options.update_existing,
                import_new=payload.options.import_new,
            ),
        )
    except RateLimitExceeded as exc:
        raise rate_limit_error(exc) from exc
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except NoValidRecordsError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=NoValidRecordsResponse(
                message=str(exc),
                invalid_count=len(exc.invalid_records),
                invalid_records=[
                    InvalidRecordResponse(record=item.record, errors=item.errors)
                    for item in exc.invalid_records
                ],
            ).model_dump(),
        ) from exc

    job = None
    if result.job is not None:
        job = ScrapeImportJobResponse(**to_accepted_response(result.job).model_dump())

    return ScrapeResponse(
        cache_key=result.cache_key,
        cached=result.cached,
        count=result.count,
        listings=result.listings,
        job_id=result.job.job_id if result.job is not None else None,
        job=job,
    )
