"""
app/repositories/material_repository.py

Persistence layer for catalog materials.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.domain.material_import import CatalogRow, MaterialCreate, MaterialUpdate
from db.base import utcnow
from db.models.material import Material


class MaterialRepository:
    """
    Repository for SKU lookups and batch writes of catalog materials.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_sku_set(self, *, owner_id: str, skus: Collection[str]) -> list[CatalogRow]:
        if not skus:
            return []
        stmt = select(Material.id, Material.sku, Material.name).where(
            Material.owner_id == owner_id,
            Material.sku.in_(list(skus)),
        )
        return [
            CatalogRow(id=row.id, sku=row.sku, name=row.name)
            for row in self._session.execute(stmt)
        ]

    def create_many(self, rows: Sequence[MaterialCreate]) -> int:
        if not rows:
            return 0
        self._session.add_all(
            Material(
                owner_id=row.owner_id,
                sku=row.sku,
                name=row.record.name,
                description=row.record.description,
                supplier=row.record.supplier,
                unit=row.record.unit,
                price_per_unit=row.record.price_per_unit,
                gst_inclusive=row.record.gst_inclusive,
                category=row.record.category,
                in_stock=row.record.in_stock,
                notes=row.record.notes,
            )
            for row in rows
        )
        self._session.flush()
        return len(rows)

    def update_many(self, rows: Sequence[MaterialUpdate]) -> int:
        updated = 0
        for row in rows:
            values: dict[str, Any] = {
                "name": row.record.name,
                "description": row.record.description,
                "price_per_unit": row.record.price_per_unit,
                "unit": row.record.unit,
                "category": row.record.category,
                "in_stock": row.record.in_stock,
                "gst_inclusive": row.record.gst_inclusive,
                "updated_at": utcnow(),
            }
            stmt = (
                update(Material)
                .where(Material.id == row.material_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            updated += self._session.execute(stmt).rowcount
        return updated

    def count_for_owner(self, owner_id: str) -> int:
        stmt = select(func.count()).select_from(Material).where(Material.owner_id == owner_id)
        return self._session.execute(stmt).scalar_one()
