"""
Dialect-aware ``INSERT ... ON CONFLICT`` construction.

PostgreSQL and SQLite both support ``ON CONFLICT`` upserts, but SQLAlchemy
exposes them through dialect-specific ``insert()`` constructs. Callers ask for
the construct matching the session's bind so the same statement runs in
production and against the in-memory test database.
"""
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_insert(db: Session, table):
    """Return a dialect ``insert(table)`` supporting ``on_conflict_do_*``."""
    dialect = db.get_bind().dialect.name
    try:
        factory = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"ON CONFLICT upserts are not supported on dialect '{dialect}'")
    return factory(table)
