from grant_notify.db.base import Base
from grant_notify.db.session import get_db, engine, SessionLocal
from grant_notify.db.tables import ALL_TABLE_NAMES, COMMITTEE_TABLE_NAMES, NOTIFICATION_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "COMMITTEE_TABLE_NAMES", "NOTIFICATION_TABLE_NAMES"]
