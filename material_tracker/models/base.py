# material_tracker/models/base.py
from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from material_tracker.config import settings as app_settings

Base = declarative_base()

# Execution-Option, mit der `atomic` eine Schreibtransaktion anfordert
SQLITE_BEGIN_OPTION = "sqlite_begin"


def _install_sqlite_pragmas(engine: Engine) -> None:
    """
    pysqlite startet Transaktionen erst beim ersten Schreibzugriff. Die
    Transaktion wird daher selbst geoeffnet: Schreib-Einheiten (`atomic`)
    setzen die Execution-Option `sqlite_begin="IMMEDIATE"` und holen sich so
    die Schreibsperre vor dem ersten Lesen. Reine Lesezugriffe laufen mit
    einem normalen (deferred) BEGIN und blockieren keine Schreiber.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        modus = conn.get_execution_options().get(SQLITE_BEGIN_OPTION)
        conn.exec_driver_sql(f"BEGIN {modus}" if modus else "BEGIN")


def build_engine(url: Optional[str] = None) -> Engine:
    url = url or app_settings.DATABASE_URL

    # SQLite im Speicher (Tests): eine Verbindung fuer alle Sessions
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
        _install_sqlite_pragmas(engine)
        return engine

    # SQLite: Pfad absolut machen und Ordner sicherstellen
    if url.startswith("sqlite:///"):
        rel = url[len("sqlite:///"):]  # z. B. ./db/material-tracker.db
        db_file = Path(rel)
        if not db_file.is_absolute():
            db_file = Path.cwd() / db_file
        db_file.parent.mkdir(parents=True, exist_ok=True)
        abs_url = f"sqlite:///{db_file.as_posix()}"
        engine = create_engine(
            abs_url,
            connect_args={"check_same_thread": False},  # nur für SQLite
            future=True,
            pool_pre_ping=True,
        )
        _install_sqlite_pragmas(engine)
        return engine

    # Andere DBs (Postgres/MySQL)
    return create_engine(url, future=True, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True
    )


def get_db(session_factory: sessionmaker) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
