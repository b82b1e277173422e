"""
PostgreSQL-backed fixtures.

A throwaway Postgres container is started once per session and migrated with
Alembic. Tests are skipped when docker is not reachable (or SKIP_DOCKER_TESTS=1).
"""
import os
import shutil
import subprocess
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

SERVICE_ROOT = Path(__file__).resolve().parents[2]


def _docker_available() -> bool:
    if os.getenv("SKIP_DOCKER_TESTS") == "1":
        return False
    if not shutil.which("docker"):
        return False
    try:
        proc = subprocess.run(["docker", "info"], capture_output=True, text=True, timeout=5)
    except Exception:
        return False
    return proc.returncode == 0


def make_alembic_config(database_url: str) -> Config:
    """Return an Alembic config pointing at the service migrations."""
    cfg = Config(str(SERVICE_ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    cfg.set_main_option("script_location", str(SERVICE_ROOT / "migrations"))
    return cfg


@pytest.fixture(scope="session")
def postgres_url():
    if not _docker_available():
        pytest.skip("Docker daemon is not available; skipping PostgreSQL tests")
    from testcontainers.postgres import PostgresContainer

    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    with PostgresContainer(image) as pg:
        url = pg.get_connection_url()
        # postgresql+psycopg2:// -> postgresql://
        if "+" in url.split("://", 1)[0]:
            url = "postgresql://" + url.split("://", 1)[1]
        os.environ["TEST_DATABASE_URL"] = url
        try:
            yield url
        finally:
            os.environ.pop("TEST_DATABASE_URL", None)


@pytest.fixture(scope="session")
def alembic_config(postgres_url):
    return make_alembic_config(postgres_url)


@pytest.fixture(scope="session")
def pg_engine(postgres_url, alembic_config):
    command.upgrade(alembic_config, "head")
    engine = create_engine(postgres_url)
    yield engine
    engine.dispose()


def truncate_all(engine) -> None:
    with engine.begin() as conn:
        conn.execute(text(
            "TRUNCATE user_promotion_history, user_promotions, staging_imports, "
            "import_jobs, promotions, end_users RESTART IDENTITY CASCADE"
        ))


@pytest.fixture
def pg_sessionmaker(pg_engine):
    yield sessionmaker(bind=pg_engine, autoflush=False, autocommit=False)
    truncate_all(pg_engine)


@pytest.fixture
def pg_session(pg_sessionmaker):
    session = pg_sessionmaker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
