"""
Schemas for material import trigger, poll, cancel and list endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ImportOptionsRequest(BaseModel):
    update_existing: bool = True
    import_new: bool = True


class MaterialImportRequest(BaseModel):
    source: str = Field(default="manual", min_length=1, max_length=255)
    # Raw records are validated by the import pipeline, not here, so one bad
    # record does not reject the whole request.
    records: list[Any] = Field(default_factory=list)
    options: ImportOptionsRequest = Field(default_factory=ImportOptionsRequest)


class InvalidRecordResponse(BaseModel):
    record: dict[str, Any]
    errors: list[str]


class MaterialImportAcceptedResponse(BaseModel):
    job_id: UUID
    status: str
    total_items: int
    total_batches: int
    invalid_count: int
    invalid_records: list[InvalidRecordResponse] = Field(default_factory=list)


class NoValidRecordsResponse(BaseModel):
    message: str
    invalid_count: int
    invalid_records: list[InvalidRecordResponse] = Field(default_factory=list)


class JobErrorResponse(BaseModel):
    kind: str
    message: str
    chunk_index: int | None = None
    item_index: int | None = None
    traceback: str | None = None


class ImportJobStatusResponse(BaseModel):
    job_id: UUID
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
    estimated_time_remaining_ms: int | None = None
    cancel_requested: bool = False
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    errors: list[JobErrorResponse] = Field(default_factory=list)
    invalid_records: list[InvalidRecordResponse] = Field(default_factory=list)


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobStatusResponse] = Field(default_factory=list)


class CancelImportJobResponse(BaseModel):
    success: bool
