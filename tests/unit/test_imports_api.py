import uuid

from sqlalchemy import func, select

from betpromo.db import models
from betpromo.imports.csv_parser import CSV_COLUMNS, parse_csv


def _upload(client, content, filename="players.csv", **data):
    return client.post("/imports/upload", files={"file": (filename, content, "text/csv")}, data=data)


def test_upload_runs_job_in_background(client, db_session, csv_text):
    content = csv_text("1,ext-1,,10,,BrandA,Welcome,,,", "2,ext-2,,10,,BrandA,Welcome,,,").encode()

    response = _upload(client, content, promotion_name="API Promo")

    assert response.status_code == 202
    body = response.json()
    assert body["original_filename"] == "players.csv"
    assert body["filename"].startswith("import-")
    assert body["mode"] == "full"
    assert body["total"] == 2

    job = client.get(f"/imports/jobs/{body['id']}").json()
    assert job["status"] == "completed"
    assert job["progress"] == 2
    assert job["result_summary"]["new_users"] == 2

    db_session.expire_all()
    assert db_session.scalars(select(models.Promotion.name)).all() == ["API Promo"]

    jobs = client.get("/imports/jobs", params={"status": "completed"}).json()
    assert [j["id"] for j in jobs] == [body["id"]]


def test_upload_rejects_non_csv(client):
    response = _upload(client, b"a,b\n1,2\n", filename="players.txt")

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_FILE"


def test_upload_rejects_invalid_rows_before_staging(client, db_session, csv_text):
    response = _upload(client, csv_text("1,,,,,,P,,,", "bad,,,,,,P,,,").encode())

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "CSV_VALIDATION_ERROR"
    assert body["errors"][0].startswith("Line 3:")
    assert db_session.scalar(select(func.count()).select_from(models.ImportJob)) == 0


def test_users_only_upload_then_link(client, csv_text):
    content = csv_text("1,,,,,,From File,,,", "2,,,,,,From File,,,").encode()
    job = _upload(client, content, users_only="true").json()
    assert job["mode"] == "users_only"

    summaries = client.get("/imports/").json()
    assert summaries[0]["filename"] == job["filename"]
    assert summaries[0]["processed"] is False
    assert summaries[0]["total_records"] == 2

    details = client.get(f"/imports/{job['filename']}").json()
    assert [row["smartico_user_id"] for row in details] == [1, 2]

    linked = client.post(f"/imports/{job['filename']}/link", json={"promotion_name": "Later Promo"})
    assert linked.status_code == 200
    assert linked.json()["new_user_promotions"] == 2

    again = client.post(f"/imports/{job['filename']}/link", json={})
    assert again.status_code == 400
    assert again.json()["error_code"] == "CSV_NOT_FOUND"


def test_unknown_job_and_import(client):
    assert client.get(f"/imports/jobs/{uuid.uuid4()}").status_code == 404
    missing = client.get("/imports/missing.csv")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"


def test_cleanup_endpoint(client):
    response = client.post("/imports/cleanup", params={"max_age_hours": 1})
    assert response.status_code == 200
    assert response.json() == {"removed": 0}


def test_validate_reports_rows_without_staging(client, db_session, csv_text, tmp_path):
    content = csv_text("1,,,,,,Welcome,,,", "1,,,,,,Reload,,,", "2,,,,,BrandA,,,,").encode()

    response = client.post("/imports/validate", files={"file": ("players.csv", content, "text/csv")})

    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "total_rows": 3,
        "unique_users": 2,
        "promotion_names": ["Promoção Padrão BrandA", "Reload", "Welcome"],
    }
    assert db_session.scalar(select(func.count()).select_from(models.StagingImport)) == 0
    assert db_session.scalar(select(func.count()).select_from(models.ImportJob)) == 0
    assert not (tmp_path / "uploads").exists() or not any((tmp_path / "uploads").iterdir())


def test_validate_lists_line_errors(client, csv_text):
    content = csv_text("1,,,,,,Welcome,,,", "x,,,,,,Welcome,,,", "3,,,,,,Welcome,,bad-date,").encode()

    response = client.post("/imports/validate", files={"file": ("players.csv", content, "text/csv")})

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "CSV_VALIDATION_ERROR"
    assert [e.split(":")[0] for e in body["errors"]] == ["Line 3", "Line 4"]


def test_validate_applies_promotion_override(client, csv_text):
    content = csv_text("1,,,,,,Welcome,,,").encode()

    response = client.post(
        "/imports/validate",
        files={"file": ("players.csv", content, "text/csv")},
        data={"promotion_name": "Override"},
    )

    assert response.json()["promotion_names"] == ["Override"]


def test_template_download_parses_as_an_import(client):
    response = client.get("/imports/template")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    header = response.text.splitlines()[0]
    assert header.split(",") == list(CSV_COLUMNS)

    rows = parse_csv(response.text)
    assert len(rows) == 1
    assert rows[0].smartico_user_id == 123456789
    assert rows[0].promotion_name == "Promoção de Boas-vindas"
