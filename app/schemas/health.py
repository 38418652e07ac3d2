"""
Schema for the service health endpoint.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool = False
    scrape_enabled: bool = False
    pending_scrapes: int = 0
    scrape_cache: dict[str, Any] = Field(default_factory=dict)
