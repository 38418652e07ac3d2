"""
db/models/import_job.py

Bulk import job model: lifecycle state, cumulative counters and the error log
of one import request.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class ImportJobType:
    MATERIALS = "materials"


class ImportJobStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES: tuple[str, ...] = (ImportJobStatus.PENDING, ImportJobStatus.PROCESSING)


class ImportJob(Base, TimestampMixin):
    __tablename__ = "import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Caller supplied label, e.g. supplier name or upload file",
    )
    job_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ImportJobType.MATERIALS,
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportJobStatus.PENDING,
    )

    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_batches: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_batch: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    percent_complete: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_time_remaining_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    request_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Sanitized records, import options and invalid records",
    )
    errors: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Ordered list of {kind, chunk_index, item_index, message, traceback}",
    )

    cancel_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    heartbeat_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_import_jobs_owner_id_created_at", "owner_id", "created_at"),
        Index("ix_import_jobs_status", "status"),
        Index("ix_import_jobs_status_heartbeat_at", "status", "heartbeat_at"),
    )

    def __repr__(self) -> str:
        return f"<ImportJob id={self.id} status={self.status!r} owner_id={self.owner_id!r}>"
