"""
Catalog store interface used by the batch import engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence

from app.domain.material_import import CatalogRow, MaterialCreate, MaterialUpdate


class CatalogStore(ABC):
    """
    Storage abstraction for catalog reads and per-chunk writes.
    """

    @abstractmethod
    def find_by_sku_set(self, owner_id: str, skus: Collection[str]) -> list[CatalogRow]:
        """
        Return the owner's existing rows whose SKU is in ``skus``.
        """

    @abstractmethod
    def apply_chunk(
        self,
        owner_id: str,
        creates: Sequence[MaterialCreate],
        updates: Sequence[MaterialUpdate],
    ) -> None:
        """
        Apply all creates and updates in one all-or-nothing transaction.
        """
