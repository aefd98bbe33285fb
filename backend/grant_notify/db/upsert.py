"""
Dialect-aware INSERT … ON CONFLICT.

Postgres in production, SQLite in tests: both dialects expose the same
on_conflict_do_nothing / on_conflict_do_update API, so callers pick the insert()
for the session's bind and keep one code path.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def dialect_insert(db: Session, model):
    """Return an insert() construct for *model* that supports ON CONFLICT on this bind."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
