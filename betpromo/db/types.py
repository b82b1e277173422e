"""Custom SQLAlchemy types used by the persistence layer."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.types import DateTime, TypeDecorator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware timestamp that always round-trips as UTC.

    PostgreSQL stores ``timestamptz`` natively. SQLite has no timezone support,
    so values are normalized to UTC and stored naive, then re-attached to UTC
    on the way out. This keeps comparisons and aggregates consistent between
    the production database and the in-memory test database.
    """

    cache_ok = True
    impl = DateTime

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):  # type: ignore[override]
        value = as_utc(value)
        if value is not None and dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):  # type: ignore[override]
        return as_utc(value)

    def copy(self, **kwargs):  # type: ignore[override]
        return UTCDateTime()
