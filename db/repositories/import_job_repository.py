"""
Repository for import job lifecycle persistence and status lookup.

Every state-changing write is a conditional UPDATE guarded by the statuses
the transition may leave from, so terminal jobs cannot be modified and a
concurrent cancellation or reclaim is never overwritten.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, or_, select, update
from sqlalchemy.orm import Session

from app.domain.material_import import ImportCounters
from db.models.import_job import ACTIVE_STATUSES, ImportJob, ImportJobStatus, ImportJobType


class ImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        owner_id: str,
        source: str,
        total_items: int,
        total_batches: int,
        request_payload: dict[str, Any],
    ) -> ImportJob:
        job = ImportJob(
            owner_id=owner_id,
            source=source,
            job_type=ImportJobType.MATERIALS,
            status=ImportJobStatus.PENDING,
            total_items=total_items,
            total_batches=total_batches,
            request_payload=request_payload,
            errors=[],
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ImportJob | None:
        return self._session.get(ImportJob, job_id)

    def get_owned_job(self, job_id: uuid.UUID, owner_id: str) -> ImportJob | None:
        stmt = select(ImportJob).where(ImportJob.id == job_id, ImportJob.owner_id == owner_id)
        return self._session.scalars(stmt).first()

    def list_jobs(self, *, owner_id: str, limit: int = 10) -> list[ImportJob]:
        stmt: Select[tuple[ImportJob]] = (
            select(ImportJob)
            .where(ImportJob.owner_id == owner_id)
            .order_by(ImportJob.created_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def mark_processing(self, *, job_id: uuid.UUID, now: datetime) -> bool:
        return self._transition(
            job_id=job_id,
            from_statuses=(ImportJobStatus.PENDING,),
            values={
                "status": ImportJobStatus.PROCESSING,
                "started_at": now,
                "heartbeat_at": now,
            },
        )

    def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        current_batch: int,
        counters: ImportCounters,
        percent_complete: int,
        estimated_time_remaining_ms: int | None,
        errors: list[dict[str, Any]],
        now: datetime,
    ) -> bool:
        values = {
            "current_batch": current_batch,
            "percent_complete": percent_complete,
            "estimated_time_remaining_ms": estimated_time_remaining_ms,
            "heartbeat_at": now,
            **self._counter_values(counters),
        }
        if errors:
            values["errors"] = self._current_errors(job_id) + errors
        return self._transition(
            job_id=job_id,
            from_statuses=(ImportJobStatus.PROCESSING,),
            values=values,
        )

    def finalize(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        counters: ImportCounters,
        percent_complete: int,
        errors: list[dict[str, Any]],
        now: datetime,
    ) -> bool:
        values = {
            "status": status,
            "completed_at": now,
            "heartbeat_at": now,
            "percent_complete": percent_complete,
            "estimated_time_remaining_ms": 0 if status == ImportJobStatus.COMPLETED else None,
            **self._counter_values(counters),
        }
        if errors:
            values["errors"] = self._current_errors(job_id) + errors
        return self._transition(
            job_id=job_id,
            from_statuses=(ImportJobStatus.PROCESSING,),
            values=values,
        )

    def mark_failed(
        self,
        *,
        job_id: uuid.UUID,
        errors: list[dict[str, Any]],
        now: datetime,
    ) -> bool:
        return self._transition(
            job_id=job_id,
            from_statuses=ACTIVE_STATUSES,
            values={
                "status": ImportJobStatus.FAILED,
                "completed_at": now,
                "estimated_time_remaining_ms": None,
                "errors": self._current_errors(job_id) + errors,
            },
        )

    def cancel_pending(self, *, job_id: uuid.UUID, owner_id: str, now: datetime) -> bool:
        return self._transition(
            job_id=job_id,
            owner_id=owner_id,
            from_statuses=(ImportJobStatus.PENDING,),
            values={
                "status": ImportJobStatus.CANCELLED,
                "cancel_requested_at": now,
                "completed_at": now,
            },
        )

    def request_cancel(self, *, job_id: uuid.UUID, owner_id: str, now: datetime) -> bool:
        return self._transition(
            job_id=job_id,
            owner_id=owner_id,
            from_statuses=(ImportJobStatus.PROCESSING,),
            values={"cancel_requested_at": now},
        )

    def is_cancel_requested(self, job_id: uuid.UUID) -> bool:
        stmt = select(ImportJob.cancel_requested_at).where(ImportJob.id == job_id)
        return self._session.execute(stmt).scalar_one_or_none() is not None

    def get_status(self, job_id: uuid.UUID) -> str | None:
        stmt = select(ImportJob.status).where(ImportJob.id == job_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def find_stale_processing(self, *, cutoff: datetime) -> list[uuid.UUID]:
        stmt = select(ImportJob.id).where(
            ImportJob.status == ImportJobStatus.PROCESSING,
            or_(
                ImportJob.heartbeat_at < cutoff,
                and_(ImportJob.heartbeat_at.is_(None), ImportJob.started_at < cutoff),
            ),
        )
        return list(self._session.scalars(stmt).all())

    def _transition(
        self,
        *,
        job_id: uuid.UUID,
        from_statuses: Sequence[str],
        values: dict[str, Any],
        owner_id: str | None = None,
    ) -> bool:
        conditions = [ImportJob.id == job_id, ImportJob.status.in_(from_statuses)]
        if owner_id is not None:
            conditions.append(ImportJob.owner_id == owner_id)
        stmt = (
            update(ImportJob)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    def _current_errors(self, job_id: uuid.UUID) -> list[dict[str, Any]]:
        stmt = select(ImportJob.errors).where(ImportJob.id == job_id)
        return list(self._session.execute(stmt).scalar_one_or_none() or [])

    @staticmethod
    def _counter_values(counters: ImportCounters) -> dict[str, int]:
        return {
            "processed_items": counters.processed,
            "imported_items": counters.imported,
            "updated_items": counters.updated,
            "skipped_items": counters.skipped,
            "error_items": counters.errored,
        }
