# material_tracker/services/common.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from material_tracker.errors import NotFound, StorageFailure
from material_tracker.models.base import SQLITE_BEGIN_OPTION

logger = logging.getLogger(__name__)

T = TypeVar("T")


def now_iso() -> str:
    """ISO-8601 in UTC mit Millisekunden, z. B. 2026-01-07T10:15:00.123Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Eine Arbeitseinheit: Commit bei Erfolg, sonst Rollback.
    DB-Fehler werden als StorageFailure weitergereicht.

    Unter SQLite beginnt die Einheit mit BEGIN IMMEDIATE, Lesen und Schreiben
    laufen also unter der Schreibsperre.
    """
    # liegengebliebene Lese-Transaktion abschliessen
    if db.in_transaction() and not (db.new or db.dirty or db.deleted):
        db.commit()
    try:
        if not db.in_transaction():
            db.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaktion abgebrochen: %s", exc.__class__.__name__)
        raise StorageFailure(f"Speichern fehlgeschlagen: {exc.__class__.__name__}") from exc
    except Exception:
        db.rollback()
        raise


@contextmanager
def read_only(db: Session) -> Iterator[Session]:
    """
    Lesezugriff. Eine hier begonnene Transaktion wird am Ende sofort
    beendet, damit kein Lese-Lock auf der Datei stehen bleibt. Innerhalb
    von `atomic` laeuft der Zugriff einfach in dessen Transaktion mit.
    """
    eigene = not db.in_transaction()
    try:
        yield db
    except SQLAlchemyError as exc:
        if not eigene:
            raise
        db.rollback()
        logger.exception("Lesezugriff abgebrochen: %s", exc.__class__.__name__)
        raise StorageFailure(f"Lesen fehlgeschlagen: {exc.__class__.__name__}") from exc
    finally:
        if eigene and db.in_transaction():
            db.commit()


def load_or_404(db: Session, model: Type[T], ident: int, label: str) -> T:
    # bereits geladene Objekte mit dem aktuellen DB-Stand ueberschreiben
    obj = db.get(model, ident, populate_existing=True)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def apply_fields(obj: Any, data: Dict[str, Any], allowed: Iterable[str]) -> None:
    """Uebernimmt nur bekannte Felder; unbekannte Keys werden ignoriert."""
    for field in allowed:
        if field in data:
            setattr(obj, field, data[field])


def count_refs(db: Session, column, ident: int) -> int:
    stmt = select(func.count()).select_from(column.table).where(column == ident)
    return db.scalar(stmt) or 0
