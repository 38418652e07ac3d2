"""
Material bulk-import endpoints: trigger, poll, cancel and list.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import (
    enforce_import_rate_limit,
    get_caller_identity,
    get_import_service,
)
from app.domain.material_import import ImportJobStatus, ImportOptions, InvalidRecord
from app.schemas.material_import import (
    CancelImportJobResponse,
    ImportJobListResponse,
    ImportJobStatusResponse,
    InvalidRecordResponse,
    JobErrorResponse,
    MaterialImportAcceptedResponse,
    MaterialImportRequest,
    NoValidRecordsResponse,
)
from app.services.material_import_service import (
    ImportAccepted,
    MaterialImportService,
    NoValidRecordsError,
)

router = APIRouter(prefix="/materials/import", tags=["material-import"])


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=MaterialImportAcceptedResponse,
)
def trigger_material_import(
    payload: MaterialImportRequest,
    owner_id: str = Depends(enforce_import_rate_limit),
    service: MaterialImportService = Depends(get_import_service),
) -> MaterialImportAcceptedResponse:
    try:
        accepted = service.trigger_import(
            owner_id=owner_id,
            records=payload.records,
            source=payload.source,
            options=ImportOptions(
                update_existing=payload.options.update_existing,
                import_new=payload.options.import_new,
            ),
        )
    except NoValidRecordsError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=NoValidRecordsResponse(
                message=str(exc),
                invalid_count=len(exc.invalid_records),
                invalid_records=_to_invalid_responses(exc.invalid_records),
            ).model_dump(),
        ) from exc

    return to_accepted_response(accepted)


@router.get("/jobs", response_model=ImportJobListResponse)
def list_import_jobs(
    limit: int = Query(default=10, ge=1, le=100, description="Max jobs returned, newest first"),
    owner_id: str = Depends(get_caller_identity),
    service: MaterialImportService = Depends(get_import_service),
) -> ImportJobListResponse:
    jobs = service.list_recent_jobs(owner_id=owner_id, limit=limit)
    return ImportJobListResponse(jobs=[_to_status_response(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=ImportJobStatusResponse)
def get_import_job(
    job_id: UUID,
    owner_id: str = Depends(get_caller_identity),
    service: MaterialImportService = Depends(get_import_service),
) -> ImportJobStatusResponse:
    job = service.get_job_status(job_id=job_id, owner_id=owner_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import job not found: {job_id}",
        )
    return _to_status_response(job)


@router.delete("/jobs/{job_id}", response_model=CancelImportJobResponse)
def cancel_import_job(
    job_id: UUID,
    owner_id: str = Depends(get_caller_identity),
    service: MaterialImportService = Depends(get_import_service),
) -> CancelImportJobResponse:
    if not service.cancel_job(job_id=job_id, owner_id=owner_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Job cannot be cancelled: it does not exist or has already finished.",
        )
    return CancelImportJobResponse(success=True)


def to_accepted_response(accepted: ImportAccepted) -> MaterialImportAcceptedResponse:
    return MaterialImportAcceptedResponse(
        job_id=accepted.job_id,
        status=accepted.status,
        total_items=accepted.total_items,
        total_batches=accepted.total_batches,
        invalid_count=accepted.invalid_count,
        invalid_records=_to_invalid_responses(accepted.invalid_records),
    )


def _to_invalid_responses(items: list[InvalidRecord]) -> list[InvalidRecordResponse]:
    return [InvalidRecordResponse(record=item.record, errors=item.errors) for item in items]


def _to_status_response(job: ImportJobStatus) -> ImportJobStatusResponse:
    return ImportJobStatusResponse(
        job_id=job.job_id,
        source=job.source,
        job_type=job.job_type,
        status=job.status,
        total_items=job.total_items,
        total_batches=job.total_batches,
        current_batch=job.current_batch,
        processed_items=job.processed_items,
        imported_items=job.imported_items,
        updated_items=job.updated_items,
        skipped_items=job.skipped_items,
        error_items=job.error_items,
        percent_complete=job.percent_complete,
        estimated_time_remaining_ms=job.estimated_time_remaining_ms,
        cancel_requested=job.cancel_requested,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        errors=[
            JobErrorResponse(
                kind=entry.kind,
                message=entry.message,
                chunk_index=entry.chunk_index,
                item_index=entry.item_index,
                traceback=entry.traceback,
            )
            for entry in job.errors
        ],
        invalid_records=_to_invalid_responses(job.invalid_records),
    )
