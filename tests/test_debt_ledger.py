from __future__ import annotations

from decimal import Decimal

import pytest

from material_tracker.errors import NotFound
from material_tracker.models.entities import Glaeubiger, Schuldner
from material_tracker.services import debt_ledger


def _glaeubiger(db, **extra):
    data = {"datum": "2026-01-07", "name": "Vermieter", "betrag": 500}
    data.update(extra)
    return debt_ledger.create_glaeubiger(db, data)


class TestGlaeubiger:

    def test_create(self, db):
        g = _glaeubiger(db, faelligkeit="2026-02-01")
        assert g.bezahlt == 0
        assert g.offen == Decimal("500")
        assert g.status == "offen"
        assert g.faelligkeit == "2026-02-01"

    def test_teilzahlungen(self, db):
        g = _glaeubiger(db)
        debt_ledger.verbuche_zahlung_glaeubiger(db, g.id, 200)
        g = debt_ledger.verbuche_zahlung_glaeubiger(db, g.id, "100.50")
        assert g.bezahlt == Decimal("300.50")
        assert g.offen == Decimal("199.50")
        assert g.status == "offen"

    def test_ueberzahlung_wird_nicht_begrenzt(self, db):
        g = _glaeubiger(db)
        g = debt_ledger.verbuche_zahlung_glaeubiger(db, g.id, 550)
        assert g.bezahlt == Decimal("550")
        assert g.offen == Decimal("-50")
        assert g.status == "bezahlt"

    def test_update_behaelt_notiz_und_faelligkeit(self, db):
        g = _glaeubiger(db, notiz="Miete Januar", faelligkeit="2026-02-01")
        g = debt_ledger.update_glaeubiger(db, g.id, {"betrag": 450, "bezahlt": 450, "notiz": None, "faelligkeit": None})
        assert g.notiz == "Miete Januar"
        assert g.faelligkeit == "2026-02-01"
        assert g.offen == 0
        assert g.status == "bezahlt"

    def test_delete_und_not_found(self, db):
        g = _glaeubiger(db)
        debt_ledger.delete_glaeubiger(db, g.id)
        with pytest.raises(NotFound, match="Glaeubiger"):
            debt_ledger.get_glaeubiger(db, g.id)
        with pytest.raises(NotFound):
            debt_ledger.verbuche_zahlung_glaeubiger(db, g.id, 10)

    def test_list(self, db):
        a = _glaeubiger(db)
        b = _glaeubiger(db, name="Bank")
        assert [g.id for g in debt_ledger.list_glaeubiger(db)] == [b.id, a.id]


class TestSchuldner:

    def test_zahlung(self, db):
        s = debt_ledger.create_schuldner(db, {"datum": "2026-01-07", "name": "Nachbar", "betrag": 80})
        s = debt_ledger.verbuche_zahlung_schuldner(db, s.id, 80)
        assert s.offen == 0
        assert s.status == "bezahlt"

    def test_getrennte_tabellen(self, db):
        s = debt_ledger.create_schuldner(db, {"datum": "2026-01-07", "name": "Nachbar", "betrag": 80})
        assert debt_ledger.list_glaeubiger(db) == []
        assert [x.id for x in debt_ledger.list_schuldner(db)] == [s.id]
        debt_ledger.update_schuldner(db, s.id, {"name": "Nachbarin"})
        assert debt_ledger.get_schuldner(db, s.id).name == "Nachbarin"
        debt_ledger.delete_schuldner(db, s.id)
        assert debt_ledger.list_schuldner(db) == []


class TestFaellige:

    @pytest.mark.parametrize("model", [Glaeubiger, Schuldner])
    def test_offene_bis_stichtag(self, db, model):
        def neu(name, faelligkeit, bezahlt=0):
            return debt_ledger.create_eintrag(
                db, model,
                {"datum": "2026-01-01", "name": name, "betrag": 100, "bezahlt": bezahlt, "faelligkeit": faelligkeit},
            )

        spaet = neu("spaet", "2026-03-01")
        frueh = neu("frueh", "2026-01-15")
        neu("erledigt", "2026-01-10", bezahlt=100)
        neu("ohne", None)
        mitte = neu("mitte", "2026-02-01")

        faellig = debt_ledger.list_faellige(db, model, "2026-02-01")
        assert [e.id for e in faellig] == [frueh.id, mitte.id]
        assert spaet.id not in [e.id for e in faellig]
