import pytest


def _create(client, name="Summer Cashback", **fields):
    return client.post("/promotions/", json={"name": name, **fields})


def test_promotion_crud_flow(client):
    created = _create(client, rules="10% back", start_date="2025-01-01T00:00:00Z", end_date="2099-01-01T00:00:00Z")
    assert created.status_code == 201
    promo = created.json()
    assert promo["status"] == "active"

    duplicate = _create(client, name="summer cashback")
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "DUPLICATE_ENTRY"

    listing = client.get("/promotions/", params={"search": "summer"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == promo["id"]

    detail = client.get(f"/promotions/{promo['id']}").json()
    assert detail["total_users"] == 0

    updated = client.put(f"/promotions/{promo['id']}", json={"rules": "15% back"})
    assert updated.status_code == 200
    assert updated.json()["rules"] == "15% back"

    assert client.delete(f"/promotions/{promo['id']}").status_code == 204
    missing = client.get(f"/promotions/{promo['id']}")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"


def test_create_validation_errors(client):
    assert _create(client, name="").status_code == 422

    bad_dates = _create(client, start_date="2025-02-01T00:00:00Z", end_date="2025-01-01T00:00:00Z")
    assert bad_dates.status_code == 400
    assert bad_dates.json()["error_code"] == "VALIDATION_ERROR"

    assert client.get("/promotions/", params={"limit": 500}).status_code == 400


def test_enrollment_endpoints(client, user_factory):
    user_factory(1)
    user_factory(2)
    promo = _create(client, name="Manual").json()
    base = f"/promotions/{promo['id']}/users"

    result = client.post(base, json={"user_ids": [1, 2, 3]}).json()
    assert result == {"associated": 2, "skipped_missing": 1, "already_linked": 0}
    assert client.post(base, json={"user_ids": []}).status_code == 422

    users = client.get(base).json()
    assert users["total"] == 2

    assert client.get(f"{base}/1").json()["linked"] is True

    removed = client.delete(f"{base}/1")
    assert removed.json() == {"smartico_user_id": 1, "promotion_id": promo["id"], "status": "inactive"}
    assert client.delete(f"{base}/99").status_code == 404

    stats = client.get(f"/promotions/{promo['id']}/stats").json()
    assert stats["active_links"] == 1
    assert stats["inactive_links"] == 1
    assert stats["history_entries"] == 3


def test_maintenance_run(client):
    _create(client, name="Ended", start_date="2020-01-01T00:00:00Z", end_date="2020-02-01T00:00:00Z")
    _create(client, name="Soon", start_date="2020-01-01T00:00:00Z", status="scheduled")

    result = client.post("/promotions/maintenance/run").json()

    assert result == {"activated_promotions": 1, "expired_promotions": 1, "expired_links": 0}


@pytest.mark.parametrize("field", ["name", "status"])
def test_update_rejects_null_name_or_status(client, field):
    promo = _create(client, name="Nullable").json()

    response = client.put(f"/promotions/{promo['id']}", json={field: None})

    assert response.status_code == 422
    assert client.get(f"/promotions/{promo['id']}").json()[field] == promo[field]


def test_blank_names_are_rejected(client):
    assert _create(client, name="   ").status_code == 422
    promo = _create(client, name="  Padded  ").json()
    assert promo["name"] == "Padded"
    assert client.put(f"/promotions/{promo['id']}", json={"name": " \t "}).status_code == 422


def test_out_of_range_ids_are_rejected(client):
    huge = "99999999999999999999"
    assert client.get(f"/promotions/{huge}").status_code == 422
    assert client.get(f"/promotions/{2**31}").status_code == 422
    assert client.get(f"/promotions/1/users/{huge}").status_code == 422
    promo = _create(client, name="Bounded").json()
    response = client.post(f"/promotions/{promo['id']}/users", json={"user_ids": [int(huge)]})
    assert response.status_code == 422
