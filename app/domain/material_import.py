"""
app/domain/material_import.py

Domain models used by the material bulk-import flow.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ImportOptions:
    """
    Caller choices for reconciling records against existing catalog rows.
    """

    update_existing: bool = True
    import_new: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {"update_existing": self.update_existing, "import_new": self.import_new}

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "ImportOptions":
        payload = payload or {}
        return cls(
            update_existing=bool(payload.get("update_existing", True)),
            import_new=bool(payload.get("import_new", True)),
        )


@dataclass(frozen=True)
class SanitizedRecord:
    """
    Validated material record, ready for catalog reconciliation.
    """

    name: str
    supplier: str
    unit: str
    price_per_unit: Decimal
    sku: str | None = None
    category: str | None = None
    description: str | None = None
    notes: str | None = None
    in_stock: bool = False
    gst_inclusive: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "supplier": self.supplier,
            "unit": self.unit,
            "price_per_unit": str(self.price_per_unit),
            "sku": self.sku,
            "category": self.category,
            "description": self.description,
            "notes": self.notes,
            "in_stock": self.in_stock,
            "gst_inclusive": self.gst_inclusive,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SanitizedRecord":
        return cls(
            name=payload["name"],
            supplier=payload["supplier"],
            unit=payload["unit"],
            price_per_unit=Decimal(str(payload["price_per_unit"])),
            sku=payload.get("sku"),
            category=payload.get("category"),
            description=payload.get("description"),
            notes=payload.get("notes"),
            in_stock=bool(payload.get("in_stock", False)),
            gst_inclusive=bool(payload.get("gst_inclusive", False)),
        )


@dataclass(frozen=True)
class InvalidRecord:
    """
    One rejected raw record with every rule it violated.
    """

    record: dict[str, Any]
    errors: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"record": self.record, "errors": list(self.errors)}


@dataclass(frozen=True)
class ValidationResult:
    valid: list[SanitizedRecord] = field(default_factory=list)
    invalid: list[InvalidRecord] = field(default_factory=list)


class JobErrorKind:
    ITEM = "item"
    CHUNK = "chunk"
    JOB = "job"


@dataclass(frozen=True)
class JobErrorEntry:
    """
    One entry of a job's error log.

    ``chunk_index`` is zero-based; ``item_index`` is the record's position in
    the job's valid record list and is only set for item-level errors.
    """

    kind: str
    message: str
    chunk_index: int | None = None
    item_index: int | None = None
    traceback: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "chunk_index": self.chunk_index,
            "item_index": self.item_index,
            "message": self.message,
            "traceback": self.traceback,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "JobErrorEntry":
        return cls(
            kind=str(payload.get("kind") or JobErrorKind.JOB),
            message=str(payload.get("message") or ""),
            chunk_index=payload.get("chunk_index"),
            item_index=payload.get("item_index"),
            traceback=payload.get("traceback"),
        )


@dataclass
class ImportCounters:
    """
    Cumulative per-job outcome counters.
    """

    processed: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0

    def add(self, other: "ImportCounters") -> None:
        self.processed += other.processed
        self.imported += other.imported
        self.updated += other.updated
        self.skipped += other.skipped
        self.errored += other.errored

    def is_consistent(self) -> bool:
        return self.processed == self.imported + self.updated + self.skipped + self.errored


@dataclass(frozen=True)
class ChunkResult:
    """
    Outcome of one chunk: its counter deltas, error entries and whether the
    catalog write failed as a whole.
    """

    counters: ImportCounters
    errors: list[JobErrorEntry] = field(default_factory=list)
    failed: bool = False


@dataclass(frozen=True)
class ImportJobWork:
    """
    Everything an engine needs to drive one job, loaded when it starts.
    """

    job_id: uuid.UUID
    owner_id: str
    records: list[SanitizedRecord]
    options: ImportOptions
    batch_size: int


@dataclass(frozen=True)
class ImportJobStatus:
    """
    Read projection of an import job served to pollers.
    """

    job_id: uuid.UUID
    owner_id: str
    source: str
    job_type: str
    status: str
    total_items: int
    total_batches: int
    current_batch: int
    processed_items: int
    imported_items: int
    updated_items: int
    skipped_items: int
    error_items: int
    percent_complete: int
    estimated_time_remaining_ms: int | None
    cancel_requested: bool
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    errors: list[JobErrorEntry] = field(default_factory=list)
    invalid_records: list[InvalidRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CatalogRow:
    """
    Existing catalog row as seen by the import engine.
    """

    id: uuid.UUID
    sku: str
    name: str


@dataclass(frozen=True)
class MaterialCreate:
    owner_id: str
    sku: str
    record: SanitizedRecord


@dataclass(frozen=True)
class MaterialUpdate:
    material_id: uuid.UUID
    record: SanitizedRecord
