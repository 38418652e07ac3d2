"""
app/schemas package marker.
"""

from app.schemas.health import HealthResponse
from app.schemas.material_import import (
    CancelImportJobResponse,
    ImportJobListResponse,
    ImportJobStatusResponse,
    ImportOptionsRequest,
    InvalidRecordResponse,
    JobErrorResponse,
    MaterialImportAcceptedResponse,
    MaterialImportRequest,
    NoValidRecordsResponse,
)
from app.schemas.scrape import ScrapeImportJobResponse, ScrapeRequest, ScrapeResponse

__all__ = [
    "CancelImportJobResponse",
    "HealthResponse",
    "ImportJobListResponse",
    "ImportJobStatusResponse",
    "ImportOptionsRequest",
    "InvalidRecordResponse",
    "JobErrorResponse",
    "MaterialImportAcceptedResponse",
    "MaterialImportRequest",
    "NoValidRecordsResponse",
    "ScrapeImportJobResponse",
    "ScrapeRequest",
    "ScrapeResponse",
]
