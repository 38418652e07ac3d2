"""
app/services/batch_import_engine.py

Drives one import job through its records in fixed-size chunks.

Per chunk the engine looks up existing catalog rows by SKU in one query,
decides create/update/skip for every record, and writes the chunk in a single
transaction. A failed chunk write is contained: its records are counted as
errored and the next chunk runs. Counters reach the job tracker after every
chunk, and cancellation is honoured at chunk boundaries.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

from app.domain.material_import import (
    CatalogRow,
    ChunkResult,
    ImportCounters,
    ImportJobWork,
    ImportOptions,
    JobErrorEntry,
    JobErrorKind,
    MaterialCreate,
    MaterialUpdate,
    SanitizedRecord,
)
from app.logging_utils import log_event
from app.services.job_tracker import JobTracker
from app.services.progress import ProgressEstimator, count_batches
from app.storage.base import CatalogStore
from db.repositories.errors import JobStateError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_DELAY_SECONDS = 0.1
DEFAULT_MAX_CONSECUTIVE_CHUNK_FAILURES = 3

_SKU_UNSAFE = re.compile(r"[^A-Za-z0-9]")


class CatalogUnavailableError(RuntimeError):
    """
    Raised when consecutive chunk writes fail often enough that the catalog
    store is treated as unreachable.
    """


def iter_chunks(
    records: Sequence[SanitizedRecord],
    size: int,
) -> Iterator[tuple[int, Sequence[SanitizedRecord]]]:
    """
    Yield ``(offset, chunk)`` pairs in record order.
    """

    for start in range(0, len(records), size):
        yield start, records[start : start + size]


def generate_sku(name: str, supplier: str) -> str:
    prefix = _SKU_UNSAFE.sub("", supplier)[:3].upper() or "SUP"
    name_part = _SKU_UNSAFE.sub("", name)[:10].upper() or "ITEM"
    return f"{prefix}-{name_part}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class _RunState:
    chunk_index: int | None = None


class BatchImportEngine:
    def __init__(
        self,
        *,
        tracker: JobTracker,
        store: CatalogStore,
        estimator: ProgressEstimator | None = None,
        chunk_delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS,
        max_consecutive_chunk_failures: int = DEFAULT_MAX_CONSECUTIVE_CHUNK_FAILURES,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tracker = tracker
        self._store = store
        self._estimator = estimator or ProgressEstimator()
        self._chunk_delay_seconds = max(0.0, chunk_delay_seconds)
        self._max_consecutive_chunk_failures = max(0, max_consecutive_chunk_failures)
        self._sleep = sleep
        self._monotonic = monotonic

    def run(self, job_id: uuid.UUID) -> None:
        """
        Drive the job to a terminal state. Never raises: the job record is the
        only channel through which the outcome is reported.
        """

        try:
            work = self._tracker.start(job_id)
        except Exception as exc:
            logger.exception("Import job could not be started id=%s", job_id)
            self._fail_quietly(job_id, exc, chunk_index=None)
            return

        if work is None:
            return

        state = _RunState()
        try:
            self._drive(work, state)
        except JobStateError as exc:
            # Someone else moved the job out of PROCESSING (stale reclaim).
            log_event(
                logger,
                logging.WARNING,
                "import_job_abandoned",
                job_id=job_id,
                status=exc.current_status,
            )
        except Exception as exc:
            logger.exception("Import job failed id=%s chunk=%s", job_id, state.chunk_index)
            self._fail_quietly(job_id, exc, chunk_index=state.chunk_index)

    def _drive(self, work: ImportJobWork, state: _RunState) -> None:
        total = len(work.records)
        total_batches = count_batches(total, work.batch_size)
        counters = ImportCounters()
        consecutive_failures = 0
        started = self._monotonic()

        log_event(
            logger,
            logging.INFO,
            "import_job_started",
            job_id=work.job_id,
            total_items=total,
            total_batches=total_batches,
        )

        for chunk_index, (offset, chunk) in enumerate(iter_chunks(work.records, work.batch_size)):
            state.chunk_index = chunk_index

            if self._cancel_if_requested(work.job_id, counters, total=total):
                return

            result = self.process_chunk(
                owner_id=work.owner_id,
                records=chunk,
                chunk_index=chunk_index,
                offset=offset,
                options=work.options,
            )
            counters.add(result.counters)

            estimate = self._estimator.estimate(
                total=total,
                processed=counters.processed,
                elapsed_ms=(self._monotonic() - started) * 1000,
            )
            self._tracker.record_chunk(
                work.job_id,
                current_batch=chunk_index + 1,
                counters=counters,
                estimate=estimate,
                errors=result.errors,
            )

            consecutive_failures = consecutive_failures + 1 if result.failed else 0
            if (
                self._max_consecutive_chunk_failures
                and consecutive_failures >= self._max_consecutive_chunk_failures
            ):
                raise CatalogUnavailableError(
                    f"{consecutive_failures} consecutive chunk writes failed; catalog store unavailable."
                )

            if chunk_index + 1 < total_batches and self._chunk_delay_seconds > 0:
                self._sleep(self._chunk_delay_seconds)

        # A cancel accepted while the last chunk ran still ends CANCELLED.
        if self._cancel_if_requested(work.job_id, counters, total=total):
            return
        self._tracker.complete(work.job_id, counters)

    def _cancel_if_requested(self, job_id: uuid.UUID, counters: ImportCounters, *, total: int) -> bool:
        if not self._tracker.is_cancel_requested(job_id):
            return False
        self._tracker.mark_cancelled(
            job_id,
            counters,
            percent_complete=self._estimator.percent_complete(total=total, processed=counters.processed),
        )
        return True

    def process_chunk(
        self,
        *,
        owner_id: str,
        records: Sequence[SanitizedRecord],
        chunk_index: int,
        offset: int,
        options: ImportOptions,
    ) -> ChunkResult:
        skus = {record.sku for record in records if record.sku}
        try:
            existing = {row.sku: row for row in self._store.find_by_sku_set(owner_id, skus)}
        except Exception as exc:
            return self._failed_chunk(records, chunk_index=chunk_index, exc=exc, stage="lookup")

        counters = ImportCounters(processed=len(records))
        errors: list[JobErrorEntry] = []
        creates: list[MaterialCreate] = []
        updates: list[MaterialUpdate] = []
        seen_skus: set[str] = set()

        for position, record in enumerate(records):
            if record.sku and record.sku in seen_skus:
                counters.errored += 1
                errors.append(
                    JobErrorEntry(
                        kind=JobErrorKind.ITEM,
                        chunk_index=chunk_index,
                        item_index=offset + position,
                        message=f"Duplicate SKU {record.sku!r} within batch {chunk_index + 1}",
                    )
                )
                continue
            if record.sku:
                seen_skus.add(record.sku)

            match: CatalogRow | None = existing.get(record.sku) if record.sku else None
            if match is not None and options.update_existing:
                updates.append(MaterialUpdate(material_id=match.id, record=record))
            elif match is None and options.import_new:
                creates.append(
                    MaterialCreate(
                        owner_id=owner_id,
                        sku=record.sku or generate_sku(record.name, record.supplier),
                        record=record,
                    )
                )
            else:
                counters.skipped += 1

        try:
            self._store.apply_chunk(owner_id, creates, updates)
        except Exception as exc:
            return self._failed_chunk(records, chunk_index=chunk_index, exc=exc, stage="write")

        counters.imported = len(creates)
        counters.updated = len(updates)
        log_event(
            logger,
            logging.DEBUG,
            "import_chunk_processed",
            chunk_index=chunk_index,
            imported=counters.imported,
            updated=counters.updated,
            skipped=counters.skipped,
            errored=counters.errored,
        )
        return ChunkResult(counters=counters, errors=errors)

    @staticmethod
    def _failed_chunk(
        records: Sequence[SanitizedRecord],
        *,
        chunk_index: int,
        exc: Exception,
        stage: str,
    ) -> ChunkResult:
        log_event(
            logger,
            logging.ERROR,
            "import_chunk_failed",
            chunk_index=chunk_index,
            stage=stage,
            records=len(records),
            error=f"{type(exc).__name__}: {exc}",
        )
        return ChunkResult(
            counters=ImportCounters(processed=len(records), errored=len(records)),
            errors=[
                JobErrorEntry(
                    kind=JobErrorKind.CHUNK,
                    chunk_index=chunk_index,
                    message=f"Batch {chunk_index + 1} {stage} failed: {type(exc).__name__}: {exc}"[:2000],
                )
            ],
            failed=True,
        )

    def _fail_quietly(self, job_id: uuid.UUID, exc: Exception, *, chunk_index: int | None) -> None:
        try:
            if not self._tracker.fail(job_id, exc, chunk_index=chunk_index):
                logger.error("Unable to mark import job as failed; it is no longer active id=%s", job_id)
        except Exception:
            logger.exception("Failed to persist failed import job state id=%s", job_id)
