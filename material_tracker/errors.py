# material_tracker/errors.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class LedgerError(Exception):
    """Basis aller fachlichen Fehler. code/status_code fuer die Routing-Schicht."""

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            "issues": self.details,
        }


class NotFound(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class InsufficientStock(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(self, material_id: int, bestand: Decimal, menge: Decimal):
        super().__init__(
            "Bestand darf nicht negativ werden",
            details={"material_id": material_id, "bestand": str(bestand), "menge": str(menge)},
        )
        self.material_id = material_id
        self.bestand = bestand
        self.menge = menge


class ReferenceConflict(LedgerError):
    code = "CONFLICT"
    status_code = 409


class StorageFailure(LedgerError):
    code = "STORAGE_FAILURE"
    status_code = 500
