"""
Storage layer exports.
"""

from app.storage.base import CatalogStore
from app.storage.sqlalchemy_storage import SQLAlchemyCatalogStore

__all__ = ["CatalogStore", "SQLAlchemyCatalogStore"]
