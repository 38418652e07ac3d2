"""
SQLAlchemy-backed catalog store.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.domain.material_import import CatalogRow, MaterialCreate, MaterialUpdate
from app.repositories.material_repository import MaterialRepository
from app.storage.base import CatalogStore


class SQLAlchemyCatalogStore(CatalogStore):
    """
    Reads and writes materials through the repository, one session per call.
    """

    def __init__(self, *, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find_by_sku_set(self, owner_id: str, skus: Collection[str]) -> list[CatalogRow]:
        if not skus:
            return []
        with self._session_factory() as session:
            return MaterialRepository(session).find_by_sku_set(owner_id=owner_id, skus=skus)

    def apply_chunk(
        self,
        owner_id: str,
        creates: Sequence[MaterialCreate],
        updates: Sequence[MaterialUpdate],
    ) -> None:
        if not creates and not updates:
            return

        with self._session_factory() as session:
            repository = MaterialRepository(session)
            try:
                repository.create_many(creates)
                repository.update_many(updates)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
