"""Gemeinsame Fixtures: frische In-Memory-SQLite pro Test."""
from __future__ import annotations

from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy.orm import Session

from material_tracker.models.base import build_engine, get_db, make_session_factory
from material_tracker.services import kunden, material_ledger
from material_tracker.services.db_init import init_db


@pytest.fixture
def engine():
    engine = init_db(build_engine("sqlite://"))
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    yield from get_db(session_factory)


@pytest.fixture
def kunde(db):
    return kunden.create_kunde(db, "Anna Beispiel")


@pytest.fixture
def material(db):
    """menge=10, bestand=10, vk_stueck=5"""
    return material_ledger.create_material(
        db,
        {
            "datum": "2026-01-02",
            "bezeichnung": "Schrauben",
            "menge": 10,
            "ek_stueck": Decimal("2.00"),
            "ek_gesamt": Decimal("20.00"),
            "vk_stueck": 5,
            "bestand": 10,
        },
    )
