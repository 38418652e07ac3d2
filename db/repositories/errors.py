"""
Repository-layer exceptions for import job and catalog flows.
"""

from __future__ import annotations


class ImportRepositoryError(Exception):
    """Base exception for import persistence failures."""


class ImportJobNotFoundError(ImportRepositoryError):
    """Raised when a job an engine expects to own no longer exists."""


class JobStateError(ImportRepositoryError):
    """Raised when a job write is rejected because the job left the expected state."""

    def __init__(self, message: str, *, current_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status
