# material_tracker/services/balance.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from material_tracker.config import settings as app_settings

Q2 = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(val: Any, default: str = "0") -> Decimal:
    """None/'' -> default; Floats ueber str(), damit 0.1 auch 0.1 bleibt."""
    if val is None or val == "":
        val = default
    if isinstance(val, Decimal):
        return val
    if isinstance(val, (int, float)):
        return Decimal(str(val))
    return Decimal(str(val).strip().replace(",", "."))


def round2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def compute_status(bezahlt: Any, betrag: Any) -> str:
    """Gespeicherter Zahlstatus: 'bezahlt' sobald bezahlt >= betrag, sonst 'offen'."""
    if to_decimal(bezahlt) >= to_decimal(betrag):
        return app_settings.STATUS_BEZAHLT
    return app_settings.STATUS_OFFEN


def compute_offen(betrag: Any, bezahlt: Any) -> Decimal:
    # bewusst nicht auf 0 begrenzt (Ueberzahlung -> negativ)
    return to_decimal(betrag) - to_decimal(bezahlt)


def zahlstatus(bezahlt: Any, offen: Any) -> str:
    """
    Dreistufiger Anzeigestatus aus (bezahlt, offen):
    offen == 0 -> 'bezahlt', bezahlt == 0 -> 'offen', sonst 'teilbezahlt'.
    Wird nie gespeichert.
    """
    if to_decimal(offen) == ZERO:
        return app_settings.STATUS_BEZAHLT
    if to_decimal(bezahlt) == ZERO:
        return app_settings.STATUS_OFFEN
    return app_settings.STATUS_TEILBEZAHLT


def format_eur(x: Any) -> str:
    return f"{round2(to_decimal(x))}{app_settings.WAEHRUNG}"
