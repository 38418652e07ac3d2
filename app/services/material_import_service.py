"""
Trigger, poll, cancel and list facade for material import jobs.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.domain.material_import import ImportJobStatus, ImportOptions, InvalidRecord
from app.logging_utils import log_event
from app.services.batch_import_engine import BatchImportEngine
from app.services.job_tracker import JobTracker
from app.services.progress import count_batches
from app.validators.material_validator import MaterialRecordValidator
from db.models.import_job import ImportJobStatus as JobStatus

logger = logging.getLogger(__name__)


class TaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class ThreadPoolTaskExecutor:
    """
    Bounded worker pool for import engines. Owned by the application lifespan.
    """

    def __init__(self, max_workers: int = 2, *, thread_name_prefix: str = "material-import") -> None:
        self._pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix=thread_name_prefix)

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._pool.submit(task, *args, **kwargs)

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


class InlineTaskExecutor:
    """
    Runs the task on the caller's thread. Used by the CLI and tests.
    """

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


class NoValidRecordsError(ValueError):
    """
    Raised when a trigger carries no record that survives validation.
    """

    def __init__(self, invalid_records: Sequence[InvalidRecord]) -> None:
        super().__init__("No valid records to import")
        self.invalid_records = list(invalid_records)


@dataclass(frozen=True)
class ImportAccepted:
    job_id: uuid.UUID
    status: str
    total_items: int
    total_batches: int
    invalid_records: list[InvalidRecord] = field(default_factory=list)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_records)


class MaterialImportService:
    def __init__(
        self,
        *,
        tracker: JobTracker,
        engine: BatchImportEngine,
        executor: TaskExecutor,
        validator: MaterialRecordValidator | None = None,
    ) -> None:
        self._tracker = tracker
        self._engine = engine
        self._executor = executor
        self._validator = validator or MaterialRecordValidator()

    def trigger_import(
        self,
        *,
        owner_id: str,
        records: Sequence[Any],
        source: str = "manual",
        options: ImportOptions | Mapping[str, Any] | None = None,
    ) -> ImportAccepted:
        """
        Validate, persist a PENDING job and hand it to the worker pool.

        Returns as soon as the job is queued; the engine reports through the
        job record.
        """

        if not isinstance(options, ImportOptions):
            options = ImportOptions.from_dict(options)

        result = self._validator.validate(records)
        if not result.valid:
            log_event(
                logger,
                logging.INFO,
                "import_rejected",
                owner_id=owner_id,
                source=source,
                invalid_items=len(result.invalid),
            )
            raise NoValidRecordsError(result.invalid)

        job_id = self._tracker.create(
            owner_id=owner_id,
            source=source,
            records=result.valid,
            invalid_records=result.invalid,
            options=options,
        )

        try:
            self._executor.submit(self._engine.run, job_id)
        except Exception as exc:
            self._tracker.fail(job_id, exc)
            raise

        return ImportAccepted(
            job_id=job_id,
            status=JobStatus.PENDING,
            total_items=len(result.valid),
            total_batches=count_batches(len(result.valid), self._tracker.batch_size),
            invalid_records=result.invalid,
        )

    def get_job_status(self, *, job_id: uuid.UUID, owner_id: str) -> ImportJobStatus | None:
        return self._tracker.get_status(job_id, owner_id)

    def cancel_job(self, *, job_id: uuid.UUID, owner_id: str) -> bool:
        return self._tracker.cancel(job_id, owner_id)

    def list_recent_jobs(self, *, owner_id: str, limit: int = 10) -> list[ImportJobStatus]:
        return self._tracker.list_recent(owner_id, limit=limit)
