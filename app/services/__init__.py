"""
app/services package marker.
"""

from app.services.batch_import_engine import BatchImportEngine, CatalogUnavailableError
from app.services.job_tracker import JobTracker
from app.services.listing_scrape_service import ListingScrapeService, ScrapeResult
from app.services.material_import_service import (
    ImportAccepted,
    InlineTaskExecutor,
    MaterialImportService,
    NoValidRecordsError,
    ThreadPoolTaskExecutor,
)
from app.services.progress import ProgressEstimate, ProgressEstimator

__all__ = [
    "BatchImportEngine",
    "CatalogUnavailableError",
    "ImportAccepted",
    "InlineTaskExecutor",
    "JobTracker",
    "ListingScrapeService",
    "MaterialImportService",
    "NoValidRecordsError",
    "ProgressEstimate",
    "ProgressEstimator",
    "ScrapeResult",
    "ThreadPoolTaskExecutor",
]
