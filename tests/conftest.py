import os
import pytest

# Unit tests run against the in-memory SQLite engine that betpromo.db.database
# creates under pytest; make sure no production URL leaks in.
for _var in ("DATABASE_URL", "TEST_DATABASE_URL", "BETPROMO_TEST_DB"):
    os.environ.pop(_var, None)

from fastapi.testclient import TestClient

from betpromo.api.main import app
from betpromo.db import models
from betpromo.db.database import SessionLocal, engine
from betpromo.imports.csv_parser import CSVRow
from betpromo.utils.settings import refresh_import_settings

HEADER = (
    "smartico_user_id,user_ext_id,core_sm_brand_id,crm_brand_id,ext_brand_id,"
    "crm_brand_name,promotion_name,rules,start_date,end_date"
)


def _clear_tables():
    with engine.begin() as conn:
        for table in reversed(models.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def _import_settings(tmp_path, monkeypatch):
    """Point uploads at a per-test directory and reset cached settings."""
    monkeypatch.setenv("UPLOAD_PATH", str(tmp_path / "uploads"))
    for var in ("MAX_FILE_SIZE", "IMPORT_BATCH_SIZE", "IMPORT_KEEP_FILES", "IMPORT_PURGE_STAGING"):
        monkeypatch.delenv(var, raising=False)
    refresh_import_settings()
    yield
    refresh_import_settings()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        _clear_tables()


@pytest.fixture
def client(db_session):
    # db_session dependency guarantees tables are cleared after API tests too
    return TestClient(app)


@pytest.fixture
def csv_text():
    """Build CSV content from data lines, prepending the standard header."""
    def _build(*lines: str) -> str:
        return "\n".join((HEADER,) + lines) + "\n"
    return _build


@pytest.fixture
def make_row():
    def _create(user_id: int, promotion: str = "Welcome Bonus", **overrides) -> CSVRow:
        data = {
            "smartico_user_id": user_id,
            "user_ext_id": f"ext-{user_id}",
            "crm_brand_id": 10,
            "crm_brand_name": "BrandA",
            "promotion_name": promotion,
            "rules": "Deposit 10 get 10",
            "start_date": "2025-01-01T00:00:00",
            "end_date": "2025-12-31T23:59:59",
        }
        data.update(overrides)
        return CSVRow.model_validate(data).with_promotion()
    return _create
