"""
app/services/job_tracker.py

Import job state machine and counter bookkeeping.

    PENDING ──► PROCESSING ──► COMPLETED | FAILED | CANCELLED
       │
       └──────► CANCELLED | FAILED

Each method opens its own short session so the tracker can be shared by
request handlers and worker threads. A job has exactly one writer of its
counters: the engine that started it.
"""

from __future__ import annotations

import logging
import traceback
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, sessionmaker

from app.domain.material_import import (
    ImportCounters,
    ImportJobStatus,
    ImportJobWork,
    ImportOptions,
    InvalidRecord,
    JobErrorEntry,
    JobErrorKind,
    SanitizedRecord,
)
from app.logging_utils import log_event
from app.services.progress import ProgressEstimate, count_batches
from db.base import utcnow
from db.models.import_job import ImportJob, ImportJobStatus as Status
from db.repositories.errors import ImportJobNotFoundError, JobStateError
from db.repositories.import_job_repository import ImportJobRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
_MAX_ERROR_MESSAGE_LENGTH = 2000


class JobTracker:
    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._batch_size = max(1, batch_size)
        self._clock = clock

    @property
    def batch_size(self) -> int:
        return self._batch_size

    # ------------------------------------------------------------------
    # Caller side
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        owner_id: str,
        source: str,
        records: Sequence[SanitizedRecord],
        invalid_records: Sequence[InvalidRecord],
        options: ImportOptions,
    ) -> uuid.UUID:
        total = len(records)
        request_payload = {
            "records": [record.to_payload() for record in records],
            "options": options.to_dict(),
            "invalid_records": [item.to_dict() for item in invalid_records],
            "batch_size": self._batch_size,
        }
        with self._session_factory() as db:
            with db.begin():
                job = ImportJobRepository(db).create_job(
                    owner_id=owner_id,
                    source=source,
                    total_items=total,
                    total_batches=count_batches(total, self._batch_size),
                    request_payload=request_payload,
                )
                job_id = job.id

        log_event(
            logger,
            logging.INFO,
            "import_job_created",
            job_id=job_id,
            owner_id=owner_id,
            source=source,
            total_items=total,
            invalid_items=len(invalid_records),
        )
        return job_id

    def get_status(self, job_id: uuid.UUID, owner_id: str) -> ImportJobStatus | None:
        with self._session_factory() as db:
            job = ImportJobRepository(db).get_owned_job(job_id, owner_id)
            return to_job_status(job) if job is not None else None

    def list_recent(self, owner_id: str, limit: int = 10) -> list[ImportJobStatus]:
        with self._session_factory() as db:
            jobs = ImportJobRepository(db).list_jobs(owner_id=owner_id, limit=limit)
            return [to_job_status(job, include_details=False) for job in jobs]

    def cancel(self, job_id: uuid.UUID, owner_id: str) -> bool:
        """
        Cancel a PENDING job outright, or flag a PROCESSING job so its engine
        stops at the next chunk boundary. False for missing, foreign or
        finished jobs.
        """

        now = self._clock()
        with self._session_factory() as db:
            repository = ImportJobRepository(db)
            with db.begin():
                if repository.cancel_pending(job_id=job_id, owner_id=owner_id, now=now):
                    outcome = Status.CANCELLED
                elif repository.request_cancel(job_id=job_id, owner_id=owner_id, now=now):
                    outcome = "cancel_requested"
                else:
                    outcome = None

        if outcome is None:
            return False
        log_event(logger, logging.INFO, "import_job_cancel", job_id=job_id, outcome=outcome)
        return True

    # ------------------------------------------------------------------
    # Engine side
    # ------------------------------------------------------------------

    def start(self, job_id: uuid.UUID) -> ImportJobWork | None:
        """
        Move a PENDING job to PROCESSING and load its work.

        Returns None when the job already left PENDING, e.g. it was cancelled
        while queued.
        """

        now = self._clock()
        with self._session_factory() as db:
            repository = ImportJobRepository(db)
            with db.begin():
                job = repository.get_job(job_id)
                if job is None:
                    raise ImportJobNotFoundError(f"Import job not found: {job_id}")
                if not repository.mark_processing(job_id=job_id, now=now):
                    log_event(
                        logger,
                        logging.INFO,
                        "import_job_not_started",
                        job_id=job_id,
                        status=repository.get_status(job_id),
                    )
                    return None
                payload = job.request_payload or {}
                owner_id = job.owner_id

        return ImportJobWork(
            job_id=job_id,
            owner_id=owner_id,
            records=[SanitizedRecord.from_payload(item) for item in payload.get("records", [])],
            options=ImportOptions.from_dict(payload.get("options")),
            batch_size=max(1, int(payload.get("batch_size") or self._batch_size)),
        )

    def is_cancel_requested(self, job_id: uuid.UUID) -> bool:
        with self._session_factory() as db:
            return ImportJobRepository(db).is_cancel_requested(job_id)

    def record_chunk(
        self,
        job_id: uuid.UUID,
        *,
        current_batch: int,
        counters: ImportCounters,
        estimate: ProgressEstimate,
        errors: Sequence[JobErrorEntry] = (),
    ) -> None:
        with self._session_factory() as db:
            with db.begin():
                applied = ImportJobRepository(db).update_progress(
                    job_id=job_id,
                    current_batch=current_batch,
                    counters=counters,
                    percent_complete=estimate.percent_complete,
                    estimated_time_remaining_ms=estimate.estimated_time_remaining_ms,
                    errors=[entry.to_dict() for entry in errors],
                    now=self._clock(),
                )
        if not applied:
            raise self._state_error(job_id, "record progress for")

    def complete(
        self,
        job_id: uuid.UUID,
        counters: ImportCounters,
        errors: Sequence[JobErrorEntry] = (),
    ) -> None:
        self._finalize(job_id, Status.COMPLETED, counters, percent_complete=100, errors=errors)

    def mark_cancelled(
        self,
        job_id: uuid.UUID,
        counters: ImportCounters,
        *,
        percent_complete: int,
    ) -> None:
        self._finalize(job_id, Status.CANCELLED, counters, percent_complete=percent_complete)

    def fail(
        self,
        job_id: uuid.UUID,
        exc: BaseException,
        *,
        chunk_index: int | None = None,
    ) -> bool:
        message = f"{type(exc).__name__}: {exc}"[:_MAX_ERROR_MESSAGE_LENGTH]
        entry = JobErrorEntry(
            kind=JobErrorKind.JOB,
            message=message,
            chunk_index=chunk_index,
            traceback="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
        return self._mark_failed(job_id, entry)

    def reclaim_stale(self, *, timeout_seconds: float) -> list[uuid.UUID]:
        """
        Fail PROCESSING jobs whose engine stopped reporting, e.g. after a crash.
        """

        now = self._clock()
        cutoff = now - timedelta(seconds=timeout_seconds)
        with self._session_factory() as db:
            stale_ids = ImportJobRepository(db).find_stale_processing(cutoff=cutoff)

        reclaimed: list[uuid.UUID] = []
        for job_id in stale_ids:
            entry = JobErrorEntry(
                kind=JobErrorKind.JOB,
                message=f"No progress heartbeat for {int(timeout_seconds)} seconds; worker presumed lost.",
            )
            if self._mark_failed(job_id, entry):
                reclaimed.append(job_id)
        if reclaimed:
            log_event(logger, logging.WARNING, "import_jobs_reclaimed", job_ids=reclaimed)
        return reclaimed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finalize(
        self,
        job_id: uuid.UUID,
        status: str,
        counters: ImportCounters,
        *,
        percent_complete: int,
        errors: Sequence[JobErrorEntry] = (),
    ) -> None:
        with self._session_factory() as db:
            with db.begin():
                applied = ImportJobRepository(db).finalize(
                    job_id=job_id,
                    status=status,
                    counters=counters,
                    percent_complete=percent_complete,
                    errors=[entry.to_dict() for entry in errors],
                    now=self._clock(),
                )
        if not applied:
            raise self._state_error(job_id, f"mark {status}")
        log_event(
            logger,
            logging.INFO,
            "import_job_finished",
            job_id=job_id,
            status=status,
            processed=counters.processed,
            imported=counters.imported,
            updated=counters.updated,
            skipped=counters.skipped,
            errored=counters.errored,
        )

    def _mark_failed(self, job_id: uuid.UUID, entry: JobErrorEntry) -> bool:
        with self._session_factory() as db:
            with db.begin():
                applied = ImportJobRepository(db).mark_failed(
                    job_id=job_id,
                    errors=[entry.to_dict()],
                    now=self._clock(),
                )
        if applied:
            log_event(logger, logging.ERROR, "import_job_failed", job_id=job_id, error=entry.message)
        return applied

    def _state_error(self, job_id: uuid.UUID, action: str) -> JobStateError:
        with self._session_factory() as db:
            current = ImportJobRepository(db).get_status(job_id)
        return JobStateError(
            f"Cannot {action} import job {job_id} in status {current}",
            current_status=current,
        )


def to_job_status(job: ImportJob, *, include_details: bool = True) -> ImportJobStatus:
    payload = job.request_payload or {}
    errors: list[JobErrorEntry] = []
    invalid: list[InvalidRecord] = []
    if include_details:
        errors = [JobErrorEntry.from_dict(item) for item in job.errors or []]
        invalid = [
            InvalidRecord(record=item.get("record") or {}, errors=list(item.get("errors") or []))
            for item in payload.get("invalid_records", [])
        ]
    return ImportJobStatus(
        job_id=job.id,
        owner_id=job.owner_id,
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
        cancel_requested=job.cancel_requested_at is not None,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        errors=errors,
        invalid_records=invalid,
    )
