from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import Base

# Betraege in Cent-Genauigkeit, Mengen mit drei Nachkommastellen
MONEY = Numeric(12, 2)
QTY = Numeric(12, 3)

# ---------- Material & Bewegungen ----------

class Material(Base):
    __tablename__ = "material"
    id = Column(Integer, primary_key=True)
    datum = Column(String(32), nullable=False)
    bezeichnung = Column(String(200), nullable=False)
    menge = Column(QTY, nullable=False)
    ek_stueck = Column(MONEY, nullable=False, default=0)
    ek_gesamt = Column(MONEY, nullable=False, default=0)
    vk_stueck = Column(MONEY, nullable=False, default=0)
    bestand = Column(QTY, nullable=False, default=0)
    einnahmen_bar = Column(MONEY, nullable=False, default=0)
    einnahmen_kombi = Column(MONEY, nullable=False, default=0)
    gewinn_aktuell = Column(MONEY, nullable=False, default=0)
    gewinn_theoretisch = Column(MONEY, nullable=False, default=0)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    bewegungen_bar = relationship("MaterialBewegungBar", back_populates="material")
    bewegungen_kombi = relationship("MaterialBewegungKombi", back_populates="material")


class MaterialBewegungBar(Base):
    __tablename__ = "material_bewegungen_bar"
    id = Column(Integer, primary_key=True)
    material_id = Column(Integer, ForeignKey("material.id", ondelete="RESTRICT"), nullable=False, index=True)
    datum = Column(String(32), nullable=False)
    menge = Column(QTY, nullable=False)
    preis = Column(MONEY, nullable=False)  # Gesamtpreis der Bewegung
    info = Column(Text)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)

    material = relationship("Material", back_populates="bewegungen_bar")


class MaterialBewegungKombi(Base):
    __tablename__ = "material_bewegungen_kombi"
    id = Column(Integer, primary_key=True)
    material_id = Column(Integer, ForeignKey("material.id", ondelete="RESTRICT"), nullable=False, index=True)
    kunde_id = Column(Integer, ForeignKey("kunden.id", ondelete="RESTRICT"), nullable=False, index=True)
    datum = Column(String(32), nullable=False)
    menge = Column(QTY, nullable=False)
    preis = Column(MONEY, nullable=False)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)

    material = relationship("Material", back_populates="bewegungen_kombi")
    kunde = relationship("Kunde")

# ---------- Kunden & Posten ----------

class Kunde(Base):
    __tablename__ = "kunden"
    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    posten_mat = relationship("KundenPostenMat", back_populates="kunde")
    posten_nomat = relationship("KundenPostenNoMat", back_populates="kunde")


class KundenPostenMat(Base):
    __tablename__ = "kunden_posten_mat"
    id = Column(Integer, primary_key=True)
    kunde_id = Column(Integer, ForeignKey("kunden.id", ondelete="RESTRICT"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("material.id", ondelete="RESTRICT"), nullable=False, index=True)
    datum = Column(String(32), nullable=False)
    menge = Column(QTY, nullable=False)
    preis = Column(MONEY, nullable=False)  # Stueckpreis
    bezahlt = Column(MONEY, nullable=False, default=0)
    offen = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False)  # offen|bezahlt
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    kunde = relationship("Kunde", back_populates="posten_mat")
    material = relationship("Material")


class KundenPostenNoMat(Base):
    __tablename__ = "kunden_posten_nomat"
    id = Column(Integer, primary_key=True)
    kunde_id = Column(Integer, ForeignKey("kunden.id", ondelete="RESTRICT"), nullable=False)
    datum = Column(String(32), nullable=False)
    bezeichnung = Column(String(200), nullable=False)
    betrag = Column(MONEY, nullable=False)
    bezahlt = Column(MONEY, nullable=False, default=0)
    offen = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)

    kunde = relationship("Kunde", back_populates="posten_nomat")

# Ueberschuss-Suche: offene Posten eines Kunden, neueste zuerst
Index("ix_kunden_posten_nomat_kunde_status", KundenPostenNoMat.kunde_id, KundenPostenNoMat.status)

# ---------- Glaeubiger / Schuldner ----------

class Glaeubiger(Base):
    __tablename__ = "glaeubiger"
    id = Column(Integer, primary_key=True)
    datum = Column(String(32), nullable=False)
    name = Column(String(200), nullable=False)
    betrag = Column(MONEY, nullable=False)
    bezahlt = Column(MONEY, nullable=False, default=0)
    offen = Column(MONEY, nullable=False)
    faelligkeit = Column(String(32))
    status = Column(String(20), nullable=False)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)


class Schuldner(Base):
    __tablename__ = "schuldner"
    id = Column(Integer, primary_key=True)
    datum = Column(String(32), nullable=False)
    name = Column(String(200), nullable=False)
    betrag = Column(MONEY, nullable=False)
    bezahlt = Column(MONEY, nullable=False, default=0)
    offen = Column(MONEY, nullable=False)
    faelligkeit = Column(String(32))
    status = Column(String(20), nullable=False)
    notiz = Column(Text)
    created_at = Column(String(40), nullable=False)
    updated_at = Column(String(40), nullable=False)
