# material_tracker/config/settings.py
import os

from dotenv import load_dotenv

load_dotenv()

APP_NAME: str = "Material-Tracker"

# DB-URL (sqlite Datei liegt unter ./db/)
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./db/material-tracker.db")

# Logs (rotierende Dateien)
LOG_DIR: str = os.getenv("LOG_DIR", "./logs")
LOG_DEBUG: bool = os.getenv("LOG_DEBUG", "0") == "1"

# Nur fuer Notiz-Texte; es gibt keine Mehrwaehrung
WAEHRUNG: str = "EUR"

# Zahlstatus, wie er in der DB steht
STATUS_OFFEN: str = "offen"
STATUS_BEZAHLT: str = "bezahlt"
# Nur abgeleitet (Anzeige), wird nie gespeichert
STATUS_TEILBEZAHLT: str = "teilbezahlt"
