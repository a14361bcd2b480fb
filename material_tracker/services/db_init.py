# material_tracker/services/db_init.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from material_tracker.models.base import Base, build_engine
# Alle Modelle registrieren (Side-Effect-Import)
import material_tracker.models.entities  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Optional[Engine] = None) -> Engine:
    """
    Legt die Tabellen an (idempotent) und gibt die Engine zurueck.
    Migrationen sind nicht Teil dieses Pakets.
    """
    engine = engine or build_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("DB-Schema bereit: %s", engine.url.render_as_string(hide_password=True))
    return engine
