# material_tracker/services/posting_ledger.py
"""
Kunden-Posten (mit Material / frei) und Zahlungsverbuchung.

Ueberschuss-Regel: Zahlt ein Kunde mehr als offen ist, wird der Posten auf
voll bezahlt gedeckelt und der Rest auf den neuesten (hoechste id) noch
offenen freien Posten desselben Kunden gebucht. Genau ein Schritt; was dort
wiederum zu viel ist, bleibt als negatives `offen` stehen. Gibt es keinen
offenen freien Posten, verfaellt der Ueberschuss.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from material_tracker.config import settings as app_settings
from material_tracker.models.entities import Kunde, KundenPostenMat, KundenPostenNoMat, Material
from material_tracker.services.balance import (
    ZERO,
    compute_offen,
    compute_status,
    format_eur,
    round2,
    to_decimal,
    zahlstatus,
)
from material_tracker.services.common import apply_fields, atomic, load_or_404, now_iso, read_only

logger = logging.getLogger(__name__)

Posten = Union[KundenPostenMat, KundenPostenNoMat]

UEBERSCHUSS_NOTIZ = "Automatische Gutschrift aus Überschuss: {quelle} ({betrag})"

MAT_FIELDS = ("kunde_id", "material_id", "datum", "menge", "preis", "bezahlt", "notiz")
NOMAT_FIELDS = ("kunde_id", "datum", "bezeichnung", "betrag", "bezahlt", "notiz")
DECIMAL_FIELDS = ("menge", "preis", "betrag", "bezahlt")


def betrag_von(posten: Posten) -> Decimal:
    if isinstance(posten, KundenPostenMat):
        return round2(to_decimal(posten.menge) * to_decimal(posten.preis))
    return to_decimal(posten.betrag)


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(data)
    for field in DECIMAL_FIELDS:
        if field in out and out[field] is not None:
            out[field] = to_decimal(out[field])
    return out


def _recompute(posten: Posten) -> None:
    betrag = betrag_von(posten)
    posten.offen = compute_offen(betrag, posten.bezahlt)
    posten.status = compute_status(posten.bezahlt, betrag)

# --- Lesen ----------------------------------------------------------------

def list_posten_mat(db: Session, kunde_id: Optional[int] = None) -> List[KundenPostenMat]:
    stmt = select(KundenPostenMat).execution_options(populate_existing=True)
    if kunde_id is not None:
        stmt = stmt.where(KundenPostenMat.kunde_id == kunde_id)
    with read_only(db):
        if kunde_id is not None:
            load_or_404(db, Kunde, kunde_id, "Kunde")
        return list(db.scalars(stmt.order_by(KundenPostenMat.id.desc())))


def list_posten_nomat(db: Session, kunde_id: Optional[int] = None) -> List[KundenPostenNoMat]:
    stmt = select(KundenPostenNoMat).execution_options(populate_existing=True)
    if kunde_id is not None:
        stmt = stmt.where(KundenPostenNoMat.kunde_id == kunde_id)
    with read_only(db):
        if kunde_id is not None:
            load_or_404(db, Kunde, kunde_id, "Kunde")
        return list(db.scalars(stmt.order_by(KundenPostenNoMat.id.desc())))


def get_posten_mat(db: Session, posten_id: int) -> KundenPostenMat:
    with read_only(db):
        return load_or_404(db, KundenPostenMat, posten_id, "KundenPostenMat")


def get_posten_nomat(db: Session, posten_id: int) -> KundenPostenNoMat:
    with read_only(db):
        return load_or_404(db, KundenPostenNoMat, posten_id, "KundenPostenNoMat")

# --- Anlegen / Aendern / Loeschen -------------------------------------------

def create_posten_mat(db: Session, data: Dict[str, Any]) -> KundenPostenMat:
    data = _normalize(data)
    with atomic(db):
        load_or_404(db, Kunde, data.get("kunde_id"), "Kunde")
        load_or_404(db, Material, data.get("material_id"), "Material")

        now = now_iso()
        posten = KundenPostenMat(bezahlt=ZERO, created_at=now, updated_at=now)
        apply_fields(posten, data, MAT_FIELDS)
        if posten.bezahlt is None:
            posten.bezahlt = ZERO
        _recompute(posten)
        db.add(posten)
        db.flush()
    logger.info("KundenPostenMat #%s angelegt (betrag=%s)", posten.id, betrag_von(posten))
    return posten


def create_posten_nomat(db: Session, data: Dict[str, Any]) -> KundenPostenNoMat:
    data = _normalize(data)
    with atomic(db):
        load_or_404(db, Kunde, data.get("kunde_id"), "Kunde")

        now = now_iso()
        posten = KundenPostenNoMat(bezahlt=ZERO, created_at=now, updated_at=now)
        apply_fields(posten, data, NOMAT_FIELDS)
        if posten.bezahlt is None:
            posten.bezahlt = ZERO
        _recompute(posten)
        db.add(posten)
        db.flush()
    logger.info("KundenPostenNoMat #%s angelegt (betrag=%s)", posten.id, posten.betrag)
    return posten


def _merge(db: Session, posten: Posten, data: Dict[str, Any], fields) -> None:
    if data.get("notiz") is None:
        data.pop("notiz", None)
    if data.get("kunde_id") is not None:
        load_or_404(db, Kunde, data["kunde_id"], "Kunde")
    if data.get("material_id") is not None:
        load_or_404(db, Material, data["material_id"], "Material")
    apply_fields(posten, data, fields)
    _recompute(posten)
    posten.updated_at = now_iso()


def update_posten_mat(db: Session, posten_id: int, data: Dict[str, Any]) -> KundenPostenMat:
    """Felder uebernehmen, dann offen/status aus menge*preis neu berechnen."""
    data = _normalize(data)
    with atomic(db):
        posten = get_posten_mat(db, posten_id)
        _merge(db, posten, data, MAT_FIELDS)
    return posten


def update_posten_nomat(db: Session, posten_id: int, data: Dict[str, Any]) -> KundenPostenNoMat:
    data = _normalize(data)
    with atomic(db):
        posten = get_posten_nomat(db, posten_id)
        _merge(db, posten, data, NOMAT_FIELDS)
    return posten


def delete_posten_mat(db: Session, posten_id: int) -> KundenPostenMat:
    # frueher verteilte Ueberschuesse bleiben, wo sie sind
    with atomic(db):
        posten = get_posten_mat(db, posten_id)
        db.delete(posten)
    logger.info("KundenPostenMat #%s geloescht", posten_id)
    return posten


def delete_posten_nomat(db: Session, posten_id: int) -> KundenPostenNoMat:
    with atomic(db):
        posten = get_posten_nomat(db, posten_id)
        db.delete(posten)
    logger.info("KundenPostenNoMat #%s geloescht", posten_id)
    return posten

# --- Zahlungen --------------------------------------------------------------

def _neuester_offener_nomat(
    db: Session, kunde_id: int, ausser_id: Optional[int] = None
) -> Optional[KundenPostenNoMat]:
    stmt = select(KundenPostenNoMat).execution_options(populate_existing=True).where(
        KundenPostenNoMat.kunde_id == kunde_id,
        KundenPostenNoMat.status == app_settings.STATUS_OFFEN,
    )
    if ausser_id is not None:
        stmt = stmt.where(KundenPostenNoMat.id != ausser_id)
    stmt = stmt.order_by(KundenPostenNoMat.id.desc()).limit(1)
    return db.scalars(stmt).first()


def _buche_ueberschuss(
    db: Session,
    kunde_id: int,
    ueberschuss: Decimal,
    quelle: str,
    now: str,
    ausser_id: Optional[int] = None,
) -> Optional[KundenPostenNoMat]:
    ziel = _neuester_offener_nomat(db, kunde_id, ausser_id)
    if ziel is None:
        logger.info("Ueberschuss %s fuer Kunde #%s ohne offenen Posten verfallen", ueberschuss, kunde_id)
        return None

    neu_bezahlt = to_decimal(ziel.bezahlt) + ueberschuss
    ziel.bezahlt = neu_bezahlt
    ziel.offen = compute_offen(ziel.betrag, neu_bezahlt)
    ziel.status = compute_status(neu_bezahlt, ziel.betrag)

    zeile = UEBERSCHUSS_NOTIZ.format(quelle=quelle, betrag=format_eur(ueberschuss))
    ziel.notiz = f"{ziel.notiz}\n{zeile}" if ziel.notiz else zeile
    ziel.updated_at = now

    logger.info(
        "Ueberschuss %s aus '%s' auf KundenPostenNoMat #%s gebucht (offen=%s)",
        ueberschuss, quelle, ziel.id, ziel.offen,
    )
    return ziel


def _verbuche(db: Session, posten: Posten, amount: Any, quelle: str) -> None:
    betrag = betrag_von(posten)
    kandidat = to_decimal(posten.bezahlt) + to_decimal(amount)
    now = now_iso()

    if kandidat <= betrag:
        posten.bezahlt = kandidat
        posten.offen = compute_offen(betrag, kandidat)
        posten.status = compute_status(kandidat, betrag)
        posten.updated_at = now
        return

    ueberschuss = kandidat - betrag
    posten.bezahlt = betrag
    posten.offen = ZERO
    posten.status = app_settings.STATUS_BEZAHLT
    posten.updated_at = now

    ausser_id = posten.id if isinstance(posten, KundenPostenNoMat) else None
    _buche_ueberschuss(db, posten.kunde_id, ueberschuss, quelle, now, ausser_id)


def verbuche_zahlung_mat(db: Session, posten_id: int, amount: Any) -> KundenPostenMat:
    """Zahlung auf einen Material-Posten inkl. Ueberschuss-Verteilung."""
    with atomic(db):
        posten = get_posten_mat(db, posten_id)
        material = db.get(Material, posten.material_id, populate_existing=True)
        quelle = material.bezeichnung if material is not None else "Material"
        _verbuche(db, posten, amount, quelle)
    logger.info("Zahlung %s auf KundenPostenMat #%s verbucht", amount, posten_id)
    return posten


def verbuche_zahlung_nomat(db: Session, posten_id: int, amount: Any) -> KundenPostenNoMat:
    """Wie verbuche_zahlung_mat; der zahlende Posten selbst ist kein Ueberschuss-Ziel."""
    with atomic(db):
        posten = get_posten_nomat(db, posten_id)
        _verbuche(db, posten, amount, posten.bezeichnung)
    logger.info("Zahlung %s auf KundenPostenNoMat #%s verbucht", amount, posten_id)
    return posten

# --- Uebersicht -------------------------------------------------------------

def kunden_saldo(db: Session, kunde_id: int) -> Dict[str, Any]:
    """Summen ueber alle Posten eines Kunden mit dreistufigem Status."""
    with read_only(db):
        mat = list_posten_mat(db, kunde_id)
        nomat = list_posten_nomat(db, kunde_id)
    posten: List[Posten] = [*mat, *nomat]

    gesamt = sum((betrag_von(p) for p in posten), start=ZERO)
    bezahlt = sum((to_decimal(p.bezahlt) for p in posten), start=ZERO)
    offen = sum((to_decimal(p.offen) for p in posten), start=ZERO)
    return {
        "kunde_id": kunde_id,
        "gesamt": gesamt,
        "bezahlt": bezahlt,
        "offen": offen,
        "status": zahlstatus(bezahlt, offen),
    }
