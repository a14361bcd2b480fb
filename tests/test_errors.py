from __future__ import annotations

from decimal import Decimal

from material_tracker.errors import InsufficientStock, LedgerError, NotFound, ReferenceConflict


def test_to_dict():
    err = NotFound("Material not found")
    assert err.to_dict() == {
        "success": False,
        "error": "Material not found",
        "code": "NOT_FOUND",
        "issues": None,
    }
    assert err.status_code == 404


def test_insufficient_stock_details():
    err = InsufficientStock(3, Decimal("1"), Decimal("2"))
    assert isinstance(err, LedgerError)
    assert str(err) == "Bestand darf nicht negativ werden"
    assert err.details == {"material_id": 3, "bestand": "1", "menge": "2"}


def test_conflict_code():
    assert ReferenceConflict("x").to_dict()["code"] == "CONFLICT"
