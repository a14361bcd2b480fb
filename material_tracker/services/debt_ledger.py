# material_tracker/services/debt_ledger.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Type, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from material_tracker.config import settings as app_settings
from material_tracker.models.entities import Glaeubiger, Schuldner
from material_tracker.services.balance import ZERO, compute_offen, compute_status, to_decimal
from material_tracker.services.common import apply_fields, atomic, load_or_404, now_iso, read_only

logger = logging.getLogger(__name__)

Eintrag = Union[Glaeubiger, Schuldner]
EintragModel = Type[Eintrag]

FIELDS = ("datum", "name", "betrag", "bezahlt", "faelligkeit", "notiz")


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(data)
    for field in ("betrag", "bezahlt"):
        if field in out and out[field] is not None:
            out[field] = to_decimal(out[field])
    return out


def _recompute(eintrag: Eintrag) -> None:
    eintrag.offen = compute_offen(eintrag.betrag, eintrag.bezahlt)
    eintrag.status = compute_status(eintrag.bezahlt, eintrag.betrag)

# --- generisch (Glaeubiger und Schuldner sind gleich aufgebaut) -------------

def list_eintraege(db: Session, model: EintragModel) -> List[Eintrag]:
    stmt = select(model).order_by(model.id.desc()).execution_options(populate_existing=True)
    with read_only(db):
        return list(db.scalars(stmt))


def get_eintrag(db: Session, model: EintragModel, ident: int) -> Eintrag:
    with read_only(db):
        return load_or_404(db, model, ident, model.__name__)


def create_eintrag(db: Session, model: EintragModel, data: Dict[str, Any]) -> Eintrag:
    data = _normalize(data)
    now = now_iso()
    eintrag = model(bezahlt=ZERO, created_at=now, updated_at=now)
    apply_fields(eintrag, data, FIELDS)
    if eintrag.bezahlt is None:
        eintrag.bezahlt = ZERO
    _recompute(eintrag)
    with atomic(db):
        db.add(eintrag)
        db.flush()
    logger.info("%s #%s angelegt (betrag=%s)", model.__name__, eintrag.id, eintrag.betrag)
    return eintrag


def update_eintrag(db: Session, model: EintragModel, ident: int, data: Dict[str, Any]) -> Eintrag:
    """notiz/faelligkeit = None lassen den bisherigen Wert stehen."""
    data = _normalize(data)
    for keep in ("notiz", "faelligkeit"):
        if data.get(keep) is None:
            data.pop(keep, None)
    with atomic(db):
        eintrag = get_eintrag(db, model, ident)
        apply_fields(eintrag, data, FIELDS)
        _recompute(eintrag)
        eintrag.updated_at = now_iso()
    return eintrag


def delete_eintrag(db: Session, model: EintragModel, ident: int) -> Eintrag:
    with atomic(db):
        eintrag = get_eintrag(db, model, ident)
        db.delete(eintrag)
    logger.info("%s #%s geloescht", model.__name__, ident)
    return eintrag


def verbuche_zahlung(db: Session, model: EintragModel, ident: int, amount: Any) -> Eintrag:
    """
    Zahlung ohne Ueberschuss-Verteilung. Zu viel Gezahltes fuehrt zu
    negativem `offen`; begrenzt wird hier nicht.
    """
    with atomic(db):
        eintrag = get_eintrag(db, model, ident)
        neu_bezahlt = to_decimal(eintrag.bezahlt) + to_decimal(amount)
        eintrag.bezahlt = neu_bezahlt
        eintrag.offen = compute_offen(eintrag.betrag, neu_bezahlt)
        eintrag.status = compute_status(neu_bezahlt, eintrag.betrag)
        eintrag.updated_at = now_iso()
    logger.info("Zahlung %s auf %s #%s verbucht", amount, model.__name__, ident)
    return eintrag


def list_faellige(db: Session, model: EintragModel, stichtag: str) -> List[Eintrag]:
    """Offene Eintraege mit faelligkeit <= stichtag (ISO-Datum), aelteste zuerst."""
    stmt = (
        select(model)
        .where(
            model.status == app_settings.STATUS_OFFEN,
            model.faelligkeit.is_not(None),
            model.faelligkeit <= stichtag,
        )
        .order_by(model.faelligkeit.asc(), model.id.asc())
        .execution_options(populate_existing=True)
    )
    with read_only(db):
        return list(db.scalars(stmt))

# --- Glaeubiger -------------------------------------------------------------

def list_glaeubiger(db: Session) -> List[Glaeubiger]:
    return list_eintraege(db, Glaeubiger)


def get_glaeubiger(db: Session, ident: int) -> Glaeubiger:
    return get_eintrag(db, Glaeubiger, ident)


def create_glaeubiger(db: Session, data: Dict[str, Any]) -> Glaeubiger:
    return create_eintrag(db, Glaeubiger, data)


def update_glaeubiger(db: Session, ident: int, data: Dict[str, Any]) -> Glaeubiger:
    return update_eintrag(db, Glaeubiger, ident, data)


def delete_glaeubiger(db: Session, ident: int) -> Glaeubiger:
    return delete_eintrag(db, Glaeubiger, ident)


def verbuche_zahlung_glaeubiger(db: Session, ident: int, amount: Any) -> Glaeubiger:
    return verbuche_zahlung(db, Glaeubiger, ident, amount)

# --- Schuldner --------------------------------------------------------------

def list_schuldner(db: Session) -> List[Schuldner]:
    return list_eintraege(db, Schuldner)


def get_schuldner(db: Session, ident: int) -> Schuldner:
    return get_eintrag(db, Schuldner, ident)


def create_schuldner(db: Session, data: Dict[str, Any]) -> Schuldner:
    return create_eintrag(db, Schuldner, data)


def update_schuldner(db: Session, ident: int, data: Dict[str, Any]) -> Schuldner:
    return update_eintrag(db, Schuldner, ident, data)


def delete_schuldner(db: Session, ident: int) -> Schuldner:
    return delete_eintrag(db, Schuldner, ident)


def verbuche_zahlung_schuldner(db: Session, ident: int, amount: Any) -> Schuldner:
    return verbuche_zahlung(db, Schuldner, ident, amount)
