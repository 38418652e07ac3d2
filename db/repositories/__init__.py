"""
Repository layer exports.
"""

from db.repositories.errors import ImportJobNotFoundError, ImportRepositoryError, JobStateError
from db.repositories.import_job_repository import ImportJobRepository

__all__ = [
    "ImportJobRepository",
    "ImportRepositoryError",
    "ImportJobNotFoundError",
    "JobStateError",
]
