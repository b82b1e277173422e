"""
Shared SQLAlchemy base and helpers.
"""
from sqlalchemy.orm import declarative_base
from datetime import datetime, UTC

# SQLite compilation shims for PostgreSQL-only types used when tests run
# against in-memory SQLite.
from .. import sqlite_compiler_shims  # noqa: F401


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


def promotion_name_key(name: str) -> str:
    """Normalized identity of a promotion name (case and whitespace folded)."""
    return " ".join((name or "").split()).casefold()


Base = declarative_base()
