# material_tracker/services/material_ledger.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from material_tracker.errors import InsufficientStock, ReferenceConflict
from material_tracker.models.entities import (
    Kunde,
    KundenPostenMat,
    Material,
    MaterialBewegungBar,
    MaterialBewegungKombi,
)
from material_tracker.services.balance import ZERO, to_decimal
from material_tracker.services.common import (
    apply_fields,
    atomic,
    count_refs,
    load_or_404,
    now_iso,
    read_only,
)

logger = logging.getLogger(__name__)

MONEY_FIELDS = (
    "ek_stueck", "ek_gesamt", "vk_stueck",
    "einnahmen_bar", "einnahmen_kombi", "gewinn_aktuell", "gewinn_theoretisch",
)
QTY_FIELDS = ("menge", "bestand")
MATERIAL_FIELDS = ("datum", "bezeichnung", "notiz") + QTY_FIELDS + MONEY_FIELDS

# --- Kennzahlen -----------------------------------------------------------

def aktueller_gewinn(einnahmen_bar: Any, einnahmen_kombi: Any, ek_gesamt: Any) -> Decimal:
    return to_decimal(einnahmen_bar) + to_decimal(einnahmen_kombi) - to_decimal(ek_gesamt)


def theoretischer_gewinn(menge: Any, ek_stueck: Any, vk_stueck: Any) -> Decimal:
    return (to_decimal(vk_stueck) - to_decimal(ek_stueck)) * to_decimal(menge)


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(data)
    for field in QTY_FIELDS + MONEY_FIELDS:
        if field in out and out[field] is not None:
            out[field] = to_decimal(out[field])
    return out

# --- CRUD -----------------------------------------------------------------

def list_material(db: Session) -> List[Material]:
    stmt = select(Material).order_by(Material.id.desc()).execution_options(populate_existing=True)
    with read_only(db):
        return list(db.scalars(stmt))


def get_material(db: Session, material_id: int) -> Material:
    with read_only(db):
        return load_or_404(db, Material, material_id, "Material")


def create_material(db: Session, data: Dict[str, Any]) -> Material:
    """
    Legt Material an. `bestand` kommt vom Aufrufer (ueblicherweise = menge),
    hier wird das nicht erzwungen.
    """
    data = _normalize(data)
    now = now_iso()
    material = Material(created_at=now, updated_at=now)
    for field in MONEY_FIELDS + ("bestand",):
        setattr(material, field, ZERO)
    apply_fields(material, data, MATERIAL_FIELDS)
    if data.get("gewinn_theoretisch") is None:
        material.gewinn_theoretisch = theoretischer_gewinn(
            material.menge, material.ek_stueck, material.vk_stueck
        )

    with atomic(db):
        db.add(material)
        db.flush()
        logger.info("Material #%s angelegt: %s (menge=%s)", material.id, material.bezeichnung, material.menge)
    return material


def update_material(db: Session, material_id: int, data: Dict[str, Any]) -> Material:
    """Direkter Feld-Ersatz; abhaengige Posten werden nicht neu berechnet."""
    data = _normalize(data)
    if data.get("notiz") is None:
        data.pop("notiz", None)

    with atomic(db):
        material = get_material(db, material_id)
        apply_fields(material, data, MATERIAL_FIELDS)
        material.updated_at = now_iso()
    return material


def delete_material(db: Session, material_id: int) -> Material:
    with atomic(db):
        material = get_material(db, material_id)
        refs = (
            count_refs(db, MaterialBewegungBar.material_id, material_id)
            + count_refs(db, MaterialBewegungKombi.material_id, material_id)
            + count_refs(db, KundenPostenMat.material_id, material_id)
        )
        if refs:
            logger.warning("Material #%s nicht geloescht: %s Referenzen", material_id, refs)
            raise ReferenceConflict(
                "Material wird noch verwendet", details={"material_id": material_id, "referenzen": refs}
            )
        db.delete(material)
    logger.info("Material #%s geloescht", material_id)
    return material

# --- Bewegungen -----------------------------------------------------------

def list_bar_movements(db: Session, material_id: Optional[int] = None) -> List[MaterialBewegungBar]:
    stmt = select(MaterialBewegungBar)
    if material_id is not None:
        stmt = stmt.where(MaterialBewegungBar.material_id == material_id)
    stmt = stmt.order_by(MaterialBewegungBar.datum.desc(), MaterialBewegungBar.id.desc())
    with read_only(db):
        return list(db.scalars(stmt))


def list_kombi_movements(db: Session, material_id: Optional[int] = None) -> List[MaterialBewegungKombi]:
    stmt = select(MaterialBewegungKombi)
    if material_id is not None:
        stmt = stmt.where(MaterialBewegungKombi.material_id == material_id)
    stmt = stmt.order_by(MaterialBewegungKombi.datum.desc(), MaterialBewegungKombi.id.desc())
    with read_only(db):
        return list(db.scalars(stmt))


def _guard_bestand(material: Material, menge: Decimal) -> None:
    if material.bestand - menge < 0:
        logger.warning(
            "Bewegung abgelehnt: Material #%s bestand=%s menge=%s", material.id, material.bestand, menge
        )
        raise InsufficientStock(material.id, material.bestand, menge)


def apply_bar_movement(
    db: Session,
    material_id: int,
    menge: Any,
    preis: Any,
    *,
    datum: str,
    info: Optional[str] = None,
    notiz: Optional[str] = None,
) -> MaterialBewegungBar:
    """
    Barverkauf: Bewegung anlegen und Material (bestand, einnahmen_bar)
    in einer Transaktion fortschreiben. `preis` ist der Gesamtpreis.
    """
    menge = to_decimal(menge)
    preis = to_decimal(preis)

    with atomic(db):
        material = get_material(db, material_id)
        _guard_bestand(material, menge)

        now = now_iso()
        bewegung = MaterialBewegungBar(
            material_id=material.id,
            datum=datum,
            menge=menge,
            preis=preis,
            info=info,
            notiz=notiz,
            created_at=now,
        )
        db.add(bewegung)

        material.bestand = material.bestand - menge
        material.einnahmen_bar = material.einnahmen_bar + preis
        material.gewinn_aktuell = aktueller_gewinn(
            material.einnahmen_bar, material.einnahmen_kombi, material.ek_gesamt
        )
        material.updated_at = now
        db.flush()

    logger.info("Bar-Bewegung #%s: Material #%s menge=%s preis=%s", bewegung.id, material_id, menge, preis)
    return bewegung


def apply_kombi_movement(
    db: Session,
    material_id: int,
    kunde_id: int,
    menge: Any,
    preis: Any,
    *,
    datum: str,
    notiz: Optional[str] = None,
) -> MaterialBewegungKombi:
    menge = to_decimal(menge)
    preis = to_decimal(preis)

    with atomic(db):
        material = get_material(db, material_id)
        load_or_404(db, Kunde, kunde_id, "Kunde")
        _guard_bestand(material, menge)

        now = now_iso()
        bewegung = MaterialBewegungKombi(
            material_id=material.id,
            kunde_id=kunde_id,
            datum=datum,
            menge=menge,
            preis=preis,
            notiz=notiz,
            created_at=now,
        )
        db.add(bewegung)

        material.bestand = material.bestand - menge
        material.einnahmen_kombi = material.einnahmen_kombi + preis
        material.gewinn_aktuell = aktueller_gewinn(
            material.einnahmen_bar, material.einnahmen_kombi, material.ek_gesamt
        )
        material.updated_at = now
        db.flush()

    logger.info(
        "Kombi-Bewegung #%s: Material #%s Kunde #%s menge=%s preis=%s",
        bewegung.id, material_id, kunde_id, menge, preis,
    )
    return bewegung
