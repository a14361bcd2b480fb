# material_tracker/services/historie.py
from __future__ import annotations

from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from material_tracker.services.common import read_only
from material_tracker.services.material_ledger import list_bar_movements, list_kombi_movements

BAR_COLUMNS = ("id", "material_id", "datum", "menge", "preis", "info", "notiz", "created_at")
KOMBI_COLUMNS = ("id", "material_id", "kunde_id", "datum", "menge", "preis", "notiz", "created_at")


def _parse_datum(raw: Any) -> Optional[datetime]:
    if not raw:
        return None
    s = str(raw).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    # naive und aware nicht mischen
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _neueste_zuerst(a: Dict[str, Any], b: Dict[str, Any]) -> int:
    da, db_ = _parse_datum(a["datum"]), _parse_datum(b["datum"])
    if da is not None and db_ is not None and da != db_:
        return -1 if da > db_ else 1
    if a["datum"] != b["datum"]:
        return -1 if a["datum"] > b["datum"] else 1
    return (b.get("id") or 0) - (a.get("id") or 0)


def get_material_historie(db: Session, material_id: int) -> List[Dict[str, Any]]:
    """
    Bar- und Kombi-Bewegungen eines Materials, neueste zuerst, gruppiert
    nach `datum`: [{"datum", "items", "latest"}, ...].
    """
    with read_only(db):
        bar = list_bar_movements(db, material_id)
        kombi = list_kombi_movements(db, material_id)

    items = [{**{c: getattr(b, c) for c in BAR_COLUMNS}, "typ": "bar"} for b in bar]
    items += [{**{c: getattr(k, c) for c in KOMBI_COLUMNS}, "typ": "kombi"} for k in kombi]
    items.sort(key=cmp_to_key(_neueste_zuerst))

    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for item in items:
        grouped.setdefault(item["datum"], []).append(item)

    return [
        {"datum": datum, "items": gruppe, "latest": gruppe[0]}
        for datum, gruppe in grouped.items()
    ]
