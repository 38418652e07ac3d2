"""
Shared fixtures: an in-memory SQLite catalog database and record factories.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers tables on Base.metadata
from db.base import Base
from db.session import create_session_factory


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


def make_raw_record(index: int, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "name": f"Treated pine 90x45 #{index}",
        "supplier": "Bunnings",
        "unit": "lm",
        "price": "12.50",
        "sku": f"BUN-{index:04d}",
        "category": "Timber",
        "in_stock": True,
    }
    record.update(overrides)
    return record


@pytest.fixture()
def raw_records() -> list[dict[str, Any]]:
    return [make_raw_record(index) for index in range(120)]


@pytest.fixture()
def make_record():
    return make_raw_record
