"""
app/repositories package marker.
"""

from app.repositories.material_repository import MaterialRepository

__all__ = [
    "MaterialRepository",
]
