"""
app/validators package marker.
"""

from app.validators.material_validator import MaterialRecordValidator

__all__ = [
    "MaterialRecordValidator",
]
