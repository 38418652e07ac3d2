"""
db/models/material.py

Catalog material model. One row per (owner, sku); rows are created and
updated by bulk imports and never deleted by them.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Index, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MaterialUnit:
    EA = "EA"
    LM = "LM"
    SQM = "SQM"
    KG = "KG"
    L = "L"
    PACK = "PACK"
    BOX = "BOX"
    ROLL = "ROLL"
    SHEET = "SHEET"
    BAG = "BAG"
    HR = "HR"
    DAY = "DAY"


ALLOWED_UNITS: tuple[str, ...] = (
    MaterialUnit.EA,
    MaterialUnit.LM,
    MaterialUnit.SQM,
    MaterialUnit.KG,
    MaterialUnit.L,
    MaterialUnit.PACK,
    MaterialUnit.BOX,
    MaterialUnit.ROLL,
    MaterialUnit.SHEET,
    MaterialUnit.BAG,
    MaterialUnit.HR,
    MaterialUnit.DAY,
)


class Material(Base, TimestampMixin):
    __tablename__ = "materials"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Identity supplied by the authentication layer",
    )
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    supplier: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="EA, LM, SQM, KG, L, PACK, BOX, ROLL, SHEET, BAG, HR, DAY",
    )
    price_per_unit: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    gst_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "sku", name="uq_materials_owner_sku"),
        Index("ix_materials_owner_id", "owner_id"),
        Index("ix_materials_supplier", "supplier"),
    )

    def __repr__(self) -> str:
        return f"<Material id={self.id} sku={self.sku!r} owner_id={self.owner_id!r}>"
