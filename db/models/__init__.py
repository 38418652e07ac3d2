"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.import_job import ImportJob
from db.models.material import Material

__all__ = [
    "ImportJob",
    "Material",
]
