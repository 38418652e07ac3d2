"""
app/domain package marker.
"""

from app.domain.material_import import (
    CatalogRow,
    ChunkResult,
    ImportCounters,
    ImportJobStatus,
    ImportJobWork,
    ImportOptions,
    InvalidRecord,
    JobErrorEntry,
    JobErrorKind,
    MaterialCreate,
    MaterialUpdate,
    SanitizedRecord,
    ValidationResult,
)

__all__ = [
    "CatalogRow",
    "ChunkResult",
    "ImportCounters",
    "ImportJobStatus",
    "ImportJobWork",
    "ImportOptions",
    "InvalidRecord",
    "JobErrorEntry",
    "JobErrorKind",
    "MaterialCreate",
    "MaterialUpdate",
    "SanitizedRecord",
    "ValidationResult",
]
