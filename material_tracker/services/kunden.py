# material_tracker/services/kunden.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from material_tracker.errors import ReferenceConflict
from material_tracker.models.entities import (
    Kunde,
    KundenPostenMat,
    KundenPostenNoMat,
    MaterialBewegungKombi,
)
from material_tracker.services.common import atomic, count_refs, load_or_404, now_iso, read_only

logger = logging.getLogger(__name__)


def _kunde_by_name(db: Session, name: str) -> Optional[Kunde]:
    stmt = select(Kunde).where(Kunde.name == name).execution_options(populate_existing=True)
    return db.scalars(stmt).first()


def list_kunden(db: Session) -> List[Kunde]:
    stmt = select(Kunde).order_by(Kunde.id.desc()).execution_options(populate_existing=True)
    with read_only(db):
        return list(db.scalars(stmt))


def get_kunde(db: Session, kunde_id: int) -> Kunde:
    with read_only(db):
        return load_or_404(db, Kunde, kunde_id, "Kunde")


def create_kunde(db: Session, name: str) -> Kunde:
    name = name.strip()
    with atomic(db):
        if _kunde_by_name(db, name):
            raise ReferenceConflict("Kunde already exists", details={"name": name})
        now = now_iso()
        kunde = Kunde(name=name, created_at=now, updated_at=now)
        db.add(kunde)
        db.flush()
    logger.info("Kunde #%s angelegt: %s", kunde.id, name)
    return kunde


def update_kunde(db: Session, kunde_id: int, name: Optional[str] = None) -> Kunde:
    with atomic(db):
        kunde = get_kunde(db, kunde_id)
        if name and name.strip() != kunde.name:
            existing = _kunde_by_name(db, name.strip())
            if existing and existing.id != kunde_id:
                raise ReferenceConflict("Kunde already exists", details={"name": name})
            kunde.name = name.strip()
        kunde.updated_at = now_iso()
    return kunde


def delete_kunde(db: Session, kunde_id: int) -> Kunde:
    """Nur ohne Posten/Kombi-Bewegungen; sonst ReferenceConflict."""
    with atomic(db):
        kunde = get_kunde(db, kunde_id)
        refs = (
            count_refs(db, KundenPostenMat.kunde_id, kunde_id)
            + count_refs(db, KundenPostenNoMat.kunde_id, kunde_id)
            + count_refs(db, MaterialBewegungKombi.kunde_id, kunde_id)
        )
        if refs:
            logger.warning("Kunde #%s nicht geloescht: %s Referenzen", kunde_id, refs)
            raise ReferenceConflict(
                "Kunde wird noch verwendet", details={"kunde_id": kunde_id, "referenzen": refs}
            )
        db.delete(kunde)
    logger.info("Kunde #%s geloescht", kunde_id)
    return kunde
