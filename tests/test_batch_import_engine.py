"""
tests/test_batch_import_engine.py

BatchImportEngine tests against an in-memory SQLite catalog.

Coverage
--------
- 120-record import in three chunks of 50
- Re-importing the same records updates instead of duplicating
- update_existing / import_new options
- A failed chunk write is contained and counted as errored
- Consecutive chunk failures fail the job
- Cancellation takes effect at the next chunk boundary
- Duplicate SKUs inside one chunk and generated SKUs
"""

from __future__ import annotations

import re
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.domain.material_import import ImportOptions
from app.repositories.material_repository import MaterialRepository
from app.services.batch_import_engine import BatchImportEngine, generate_sku
from app.services.job_tracker import JobTracker
from app.storage.sqlalchemy_storage import SQLAlchemyCatalogStore
from app.validators.material_validator import MaterialRecordValidator
from db.models.material import Material

OWNER = "owner-1"


class FlakyCatalogStore(SQLAlchemyCatalogStore):
    """
    Fails the write of selected chunks (1-based call numbers) after flushing
    part of it, so the rollback path is exercised.
    """

    def __init__(self, *, session_factory, fail_on: set[int] | None = None, always_fail: bool = False) -> None:
        super().__init__(session_factory=session_factory)
        self._factory = session_factory
        self.fail_on = fail_on or set()
        self.always_fail = always_fail
        self.calls = 0

    def apply_chunk(self, owner_id, creates, updates) -> None:
        self.calls += 1
        if self.always_fail or self.calls in self.fail_on:
            with self._factory() as session:
                MaterialRepository(session).create_many(creates)
                session.rollback()
            raise SQLAlchemyError("simulated write failure")
        super().apply_chunk(owner_id, creates, updates)


class CancellingCatalogStore(SQLAlchemyCatalogStore):
    """Requests cancellation of the job while its chunk is being written."""

    def __init__(self, *, session_factory, tracker: JobTracker) -> None:
        super().__init__(session_factory=session_factory)
        self.tracker = tracker
        self.job_id: uuid.UUID | None = None
        self.cancel_results: list[bool] = []

    def apply_chunk(self, owner_id, creates, updates) -> None:
        super().apply_chunk(owner_id, creates, updates)
        self.cancel_results.append(self.tracker.cancel(self.job_id, owner_id))


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []
        self.hook = None

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.hook is not None:
            self.hook()


@pytest.fixture()
def tracker(session_factory) -> JobTracker:
    return JobTracker(session_factory=session_factory, batch_size=50)


@pytest.fixture()
def sleep() -> SleepRecorder:
    return SleepRecorder()


def _engine(tracker, store, sleep, **kwargs) -> BatchImportEngine:
    return BatchImportEngine(tracker=tracker, store=store, sleep=sleep, **kwargs)


def _submit(tracker: JobTracker, raw_records, options: ImportOptions | None = None) -> uuid.UUID:
    result = MaterialRecordValidator().validate(raw_records)
    return tracker.create(
        owner_id=OWNER,
        source="bunnings",
        records=result.valid,
        invalid_records=result.invalid,
        options=options or ImportOptions(),
    )


def _catalog_count(session_factory) -> int:
    with session_factory() as session:
        return MaterialRepository(session).count_for_owner(OWNER)


def _assert_counters_consistent(status) -> None:
    assert status.processed_items == (
        status.imported_items + status.updated_items + status.skipped_items + status.error_items
    )
    assert status.processed_items <= status.total_items


class TestHappyPath:
    def test_imports_120_records_in_three_chunks(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records)

        _engine(tracker, store, sleep).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "COMPLETED"
        assert status.total_batches == 3
        assert status.current_batch == 3
        assert status.processed_items == 120
        assert status.imported_items == 120
        assert status.error_items == 0
        assert status.percent_complete == 100
        assert status.errors == []
        _assert_counters_consistent(status)
        assert _catalog_count(session_factory) == 120
        # Delay between chunks only, not after the last one.
        assert sleep.calls == [0.1, 0.1]

    def test_reimport_updates_instead_of_duplicating(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        engine = _engine(tracker, store, sleep)
        engine.run(_submit(tracker, raw_records))

        changed = [dict(record, price="15.00") for record in raw_records]
        job_id = _submit(tracker, changed)
        engine.run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "COMPLETED"
        assert status.updated_items == 120
        assert status.imported_items == 0
        assert _catalog_count(session_factory) == 120
        with session_factory() as session:
            prices = set(session.scalars(select(Material.price_per_unit)).all())
        assert {str(price) for price in prices} == {"15.00"}

    def test_existing_rows_skipped_when_updates_disabled(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        engine = _engine(tracker, store, sleep)
        engine.run(_submit(tracker, raw_records[:60]))

        job_id = _submit(tracker, raw_records, ImportOptions(update_existing=False, import_new=True))
        engine.run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.skipped_items == 60
        assert status.imported_items == 60
        _assert_counters_consistent(status)
        assert _catalog_count(session_factory) == 120

    def test_new_rows_skipped_when_imports_disabled(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records, ImportOptions(update_existing=True, import_new=False))

        _engine(tracker, store, sleep).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "COMPLETED"
        assert status.skipped_items == 120
        assert _catalog_count(session_factory) == 0


class TestChunkFailures:
    def test_failed_chunk_is_contained(self, session_factory, tracker, sleep, raw_records) -> None:
        store = FlakyCatalogStore(session_factory=session_factory, fail_on={2})
        job_id = _submit(tracker, raw_records)

        _engine(tracker, store, sleep).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "COMPLETED"
        assert status.processed_items == 120
        assert status.error_items == 50
        assert status.imported_items == 70
        _assert_counters_consistent(status)
        assert [(entry.kind, entry.chunk_index) for entry in status.errors] == [("chunk", 1)]
        assert "simulated write failure" in status.errors[0].message
        assert _catalog_count(session_factory) == 70

    def test_consecutive_failures_fail_the_job(self, session_factory, tracker, sleep, raw_records) -> None:
        store = FlakyCatalogStore(session_factory=session_factory, always_fail=True)
        job_id = _submit(tracker, raw_records)

        _engine(tracker, store, sleep, max_consecutive_chunk_failures=2).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "FAILED"
        assert store.calls == 2
        assert status.processed_items == 100
        assert status.error_items == 100
        kinds = [entry.kind for entry in status.errors]
        assert kinds == ["chunk", "chunk", "job"]
        assert status.errors[-1].message.startswith("CatalogUnavailableError")
        assert status.errors[-1].traceback
        assert _catalog_count(session_factory) == 0

    def test_tracker_failure_moves_job_to_failed(self, session_factory, tracker, sleep, raw_records, monkeypatch) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records)

        def broken_estimate(**_kwargs):
            raise ZeroDivisionError("bad clock")

        engine = _engine(tracker, store, sleep)
        monkeypatch.setattr(engine._estimator, "estimate", broken_estimate)
        engine.run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "FAILED"
        assert status.errors[-1].kind == "job"
        assert status.errors[-1].chunk_index == 0
        assert "ZeroDivisionError" in status.errors[-1].message


class TestCancellation:
    def test_cancel_takes_effect_at_next_chunk(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records)
        sleep.hook = lambda: tracker.cancel(job_id, OWNER)

        _engine(tracker, store, sleep).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "CANCELLED"
        assert status.processed_items == 50
        assert status.imported_items == 50
        assert status.percent_complete == 41
        assert _catalog_count(session_factory) == 50

    def test_job_cancelled_while_queued_never_runs(self, session_factory, tracker, sleep, raw_records) -> None:
        store = FlakyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records)
        tracker.cancel(job_id, OWNER)

        _engine(tracker, store, sleep).run(job_id)

        assert store.calls == 0
        assert tracker.get_status(job_id, OWNER).status == "CANCELLED"

    def test_cancel_during_last_chunk_ends_cancelled(self, session_factory, tracker, sleep, make_record) -> None:
        store = CancellingCatalogStore(session_factory=session_factory, tracker=tracker)
        job_id = _submit(tracker, [make_record(i) for i in range(10)])
        store.job_id = job_id

        _engine(tracker, store, sleep).run(job_id)

        assert store.cancel_results == [True]
        status = tracker.get_status(job_id, OWNER)
        assert status.status == "CANCELLED"
        assert status.processed_items == 10
        assert status.imported_items == 10
        assert status.percent_complete == 100
        _assert_counters_consistent(status)


class TestCounterInvariants:
    def test_counters_consistent_between_chunks(self, session_factory, tracker, sleep, raw_records) -> None:
        raw_records[60]["sku"] = raw_records[55]["sku"]
        store = FlakyCatalogStore(session_factory=session_factory, fail_on={1})
        job_id = _submit(tracker, raw_records, ImportOptions(update_existing=False, import_new=True))
        observed = []

        def poll() -> None:
            status = tracker.get_status(job_id, OWNER)
            _assert_counters_consistent(status)
            observed.append(status.processed_items)

        sleep.hook = poll
        _engine(tracker, store, sleep).run(job_id)

        assert observed == [50, 100]
        final = tracker.get_status(job_id, OWNER)
        _assert_counters_consistent(final)
        assert (final.error_items, final.imported_items) == (51, 69)

    def test_catalog_count_is_scoped_to_owner(self, session_factory, tracker, sleep, raw_records) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        engine = _engine(tracker, store, sleep)
        engine.run(_submit(tracker, raw_records[:30]))
        other = tracker.create(
            owner_id="owner-2",
            source="bunnings",
            records=MaterialRecordValidator().validate(raw_records[:5]).valid,
            invalid_records=[],
            options=ImportOptions(),
        )
        engine.run(other)

        assert _catalog_count(session_factory) == 30
        with session_factory() as session:
            assert MaterialRepository(session).count_for_owner("owner-2") == 5
            assert MaterialRepository(session).count_for_owner("nobody") == 0


class TestSkuHandling:
    def test_duplicate_sku_in_chunk_is_an_item_error(self, session_factory, tracker, sleep, raw_records) -> None:
        raw_records[10]["sku"] = raw_records[3]["sku"]
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, raw_records)

        _engine(tracker, store, sleep).run(job_id)

        status = tracker.get_status(job_id, OWNER)
        assert status.status == "COMPLETED"
        assert status.error_items == 1
        assert status.imported_items == 119
        entry = status.errors[0]
        assert (entry.kind, entry.chunk_index, entry.item_index) == ("item", 0, 10)

    def test_missing_sku_is_generated(self, session_factory, tracker, sleep, make_record) -> None:
        store = SQLAlchemyCatalogStore(session_factory=session_factory)
        job_id = _submit(tracker, [make_record(0, sku=None), make_record(1, sku=None)])

        _engine(tracker, store, sleep).run(job_id)

        assert tracker.get_status(job_id, OWNER).imported_items == 2
        with session_factory() as session:
            skus = session.scalars(select(Material.sku)).all()
        assert len(set(skus)) == 2
        assert all(re.fullmatch(r"BUN-TREATEDPIN-[0-9A-F]{6}", sku) for sku in skus)


def test_generate_sku_strips_unsafe_characters() -> None:
    sku = generate_sku("2x4 Stud (H3)", "A&B Timber")
    assert re.fullmatch(r"ABT-2X4STUDH3-[0-9A-F]{6}", sku)
