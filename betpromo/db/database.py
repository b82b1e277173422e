"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with test
fallbacks (SQLite in-memory) and exposes FastAPI dependencies.
"""
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


# Database connection URL
# Generated from individual components if DATABASE_URL is not provided
def _get_database_url() -> str:
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # All components must be set
    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = []
        if not db_user: missing.append("POSTGRES_USER")
        if not db_password: missing.append("POSTGRES_PASSWORD")
        if not db_host: missing.append("POSTGRES_HOST")
        if not db_port: missing.append("POSTGRES_PORT")
        if not db_name: missing.append("POSTGRES_DB")
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while an individual test is running,
    so at import time we also look for pytest in ``sys.modules``.
    ``PYTEST_RUNNING=1`` forces the test behaviour.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if "pytest" in sys.modules:
        return True
    return False


# Test override strategy:
# 1. If BETPROMO_TEST_DB is set, use it.
# 2. Else if TEST_DATABASE_URL (set by the Postgres container fixtures) is set, use it.
# 3. Else if running under pytest, force in-memory sqlite.
explicit_test_db = os.getenv("BETPROMO_TEST_DB")
explicit_e2e_db = os.getenv("TEST_DATABASE_URL")

if explicit_test_db:
    DATABASE_URL = explicit_test_db
    _engine_kwargs = {"connect_args": {"check_same_thread": False}} if DATABASE_URL.startswith("sqlite") else {}
elif explicit_e2e_db:
    DATABASE_URL = explicit_e2e_db
    _engine_kwargs = {}
elif _is_pytest_runtime():
    # In-memory SQLite with StaticPool so the schema persists across connections
    DATABASE_URL = SQLITE_MEMORY_URL
    _engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    DATABASE_URL = _get_database_url()
    _engine_kwargs = {"pool_pre_ping": True}


def _create_engine_with_fallback(url: str, kwargs: dict):
    """Create the engine; under pytest without an explicit DB fall back to in-memory sqlite."""
    try:
        return create_engine(url, **kwargs)
    except OperationalError:
        if _is_pytest_runtime() and not os.getenv("TEST_DATABASE_URL") and not os.getenv("BETPROMO_TEST_DB"):
            return create_engine(
                SQLITE_MEMORY_URL,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        raise


def _is_sqlite_memory(url) -> bool:
    """True for in-memory SQLite URLs, whatever way the URL renders ``:memory:``."""
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


engine = _create_engine_with_fallback(DATABASE_URL, _engine_kwargs)

# An in-memory SQLite database has no migrations applied; create the schema
# eagerly so every connection handed out by the StaticPool sees the tables.
if _is_sqlite_memory(engine.url):
    from betpromo.db import models  # local import to avoid circular import at module load
    models.Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_session_local():
    """Return a generator that yields a Session and closes it when finished.

    Used by background workers that run outside the request cycle:
    ``db = next(get_db_session_local())``.
    """

    def _session_gen():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    return _session_gen()
