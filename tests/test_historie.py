from __future__ import annotations

from decimal import Decimal

from material_tracker.models.entities import MaterialBewegungBar, MaterialBewegungKombi
from material_tracker.services import material_ledger
from material_tracker.services.historie import get_material_historie


def _bar(db, material, ident, datum, menge=1):
    db.add(
        MaterialBewegungBar(
            id=ident, material_id=material.id, datum=datum,
            menge=Decimal(menge), preis=Decimal("5.00"), created_at="2026-01-01T00:00:00.000Z",
        )
    )
    db.commit()


def _kombi(db, material, kunde, ident, datum, menge=1):
    db.add(
        MaterialBewegungKombi(
            id=ident, material_id=material.id, kunde_id=kunde.id, datum=datum,
            menge=Decimal(menge), preis=Decimal("5.00"), created_at="2026-01-01T00:00:00.000Z",
        )
    )
    db.commit()


def _ids(gruppe):
    return [(item["typ"], item["id"]) for item in gruppe["items"]]


class TestHistorie:

    def test_leer(self, db, material):
        assert get_material_historie(db, material.id) == []

    def test_gruppen_neueste_zuerst(self, db, material, kunde):
        _bar(db, material, 10, "2026-01-05")
        _bar(db, material, 11, "2026-01-05")
        _kombi(db, material, kunde, 5, "2026-01-03")

        historie = get_material_historie(db, material.id)

        assert [g["datum"] for g in historie] == ["2026-01-05", "2026-01-03"]
        assert _ids(historie[0]) == [("bar", 11), ("bar", 10)]
        assert _ids(historie[1]) == [("kombi", 5)]
        assert historie[0]["latest"]["id"] == 11
        assert historie[1]["latest"] is historie[1]["items"][0]

    def test_bar_und_kombi_gemischt(self, db, material, kunde):
        _bar(db, material, 1, "2026-01-02")
        _kombi(db, material, kunde, 7, "2026-01-04")
        _bar(db, material, 2, "2026-01-04")

        historie = get_material_historie(db, material.id)

        assert [g["datum"] for g in historie] == ["2026-01-04", "2026-01-02"]
        assert _ids(historie[0]) == [("kombi", 7), ("bar", 2)]
        item = historie[0]["items"][0]
        assert item["kunde_id"] == kunde.id
        assert "info" not in item
        assert "info" in historie[0]["items"][1]

    def test_zeitpunkte_werden_verglichen(self, db, material):
        # gleicher Tag, unterschiedliche Zeitzonen: 10:00Z ist spaeter als 11:00+02:00
        _bar(db, material, 1, "2026-01-05T10:00:00Z")
        _bar(db, material, 2, "2026-01-05T11:00:00+02:00")

        historie = get_material_historie(db, material.id)
        assert [g["datum"] for g in historie] == ["2026-01-05T10:00:00Z", "2026-01-05T11:00:00+02:00"]

    def test_unlesbares_datum_faellt_auf_text_zurueck(self, db, material):
        _bar(db, material, 1, "gestern")
        _bar(db, material, 2, "2026-01-05")
        _bar(db, material, 3, "vorgestern")

        historie = get_material_historie(db, material.id)
        assert [g["datum"] for g in historie] == ["vorgestern", "gestern", "2026-01-05"]

    def test_nur_eigenes_material(self, db, material):
        anderes = material_ledger.create_material(
            db, {"datum": "2026-01-02", "bezeichnung": "Muttern", "menge": 5, "bestand": 5}
        )
        _bar(db, material, 1, "2026-01-05")
        _bar(db, anderes, 2, "2026-01-05")

        historie = get_material_historie(db, material.id)
        assert _ids(historie[0]) == [("bar", 1)]

    def test_bewegungen_aus_dem_ledger(self, db, material, kunde):
        material_ledger.apply_bar_movement(db, material.id, 1, 5, datum="2026-01-06", info="Theke")
        k = material_ledger.apply_kombi_movement(db, material.id, kunde.id, 2, 10, datum="2026-01-06")

        historie = get_material_historie(db, material.id)
        assert len(historie) == 1
        items = historie[0]["items"]
        assert sorted(i["typ"] for i in items) == ["bar", "kombi"]
        kombi = next(i for i in items if i["typ"] == "kombi")
        assert kombi["id"] == k.id
        assert kombi["menge"] == 2
