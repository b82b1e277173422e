import pytest

from betpromo.imports import pipeline


@pytest.fixture
def seeded(db_session, make_row):
    pipeline.process_rows(
        db_session,
        [make_row(1, end_date="2099-01-01T00:00:00"), make_row(2, crm_brand_id=20, crm_brand_name="BrandB")],
        "seed.csv",
    )


def test_user_listing_and_detail(client, seeded):
    page = client.get("/users/", params={"limit": 1}).json()
    assert page["total"] == 2
    assert page["pages"] == 2
    assert len(page["items"]) == 1

    user = client.get("/users/1").json()
    assert user["user_ext_id"] == "ext-1"
    assert user["promotions"][0]["promotion_name"] == "Welcome Bonus"

    history = client.get("/users/1/history").json()
    assert [h["operation_type"] for h in history] == ["insert"]

    missing = client.get("/users/404")
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "NOT_FOUND"


def test_brand_and_stats_endpoints(client, seeded):
    brands = client.get("/users/brands").json()
    assert {b["crm_brand_id"] for b in brands} == {10, 20}

    assert client.get("/users/brands/20").json()["total"] == 1

    stats = client.get("/users/stats").json()
    assert stats["total_users"] == 2
    assert stats["active_links"] == 2


def test_search_endpoints(client, seeded):
    results = client.get("/search/", params={"q": "ext-", "type": "user_ext_id"}).json()
    assert results["total"] == 2
    user_one = next(u for u in results["items"] if u["smartico_user_id"] == 1)
    assert len(user_one["promotions"]) == 1

    empty = client.get("/search/", params={"q": " "})
    assert empty.status_code == 400
    assert client.get("/search/", params={"q": "1", "type": "email"}).status_code == 422

    quick = client.get("/search/quick", params={"q": "2"}).json()
    assert quick[0]["smartico_user_id"] == 2


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "connected"}


def test_out_of_range_user_ids(client, seeded):
    huge = "99999999999999999999"
    assert client.get(f"/users/{huge}").status_code == 422
    assert client.get(f"/users/{huge}/history").status_code == 422
    assert client.get("/users/", params={"smartico_user_id": huge}).status_code == 422
    assert client.get("/users/0").status_code == 422

    results = client.get("/search/", params={"q": huge})
    assert results.status_code == 200
    assert results.json()["total"] == 0
    assert client.get("/search/quick", params={"q": huge}).json() == []
