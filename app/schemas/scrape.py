"""
Schemas for the supplier listing scrape endpoint.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.material_import import ImportOptionsRequest, InvalidRecordResponse


class ScrapeRequest(BaseModel):
    supplier: str = Field(min_length=1, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    urls: list[str] | None = None
    import_results: bool = False
    options: ImportOptionsRequest = Field(default_factory=ImportOptionsRequest)


class ScrapeImportJobResponse(BaseModel):
    job_id: UUID
    status: str
    total_items: int
    total_batches: int
    invalid_count: int
    invalid_records: list[InvalidRecordResponse] = Field(default_factory=list)


class ScrapeResponse(BaseModel):
    cache_key: str
    cached: bool
    count: int
    listings: list[dict[str, Any]] = Field(default_factory=list)
    job_id: UUID | None = None
    job: ScrapeImportJobResponse | None = None
