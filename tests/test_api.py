"""Tests for the HTTP API."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from cm_orders.api.main import app, get_runner
from cm_orders.auth.session import LoginError
from cm_orders.config import config
from cm_orders.fetch.endpoints import get_order_url
from cm_orders.parse.extractors.order_extractor import parse_order_html

from pages import BUY_ORDER_HTML, PRODUCT_HTML
from test_runner import PRODUCT_URL, FakeSession, make_runner

SLUG = "Singles/Romance-Dawn/Monkey-D-Luffy"


@pytest.fixture
def session() -> FakeSession:
    return FakeSession({get_order_url("1234567"): BUY_ORDER_HTML, PRODUCT_URL: PRODUCT_HTML}, search=["1234567"])


@pytest.fixture
def runner(db_path, session):
    runner = make_runner(db_path, session)
    asyncio.run(runner.initialize())
    return runner


@pytest.fixture
def client(runner, monkeypatch):
    monkeypatch.setattr(config, "API_KEY", None)
    app.dependency_overrides[get_runner] = lambda: runner
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_api_key_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(config, "API_KEY", "secret-key")

    assert client.get("/orders").status_code == 403
    assert client.get("/orders", headers={"X-API-KEY": "wrong"}).status_code == 403
    assert client.get("/orders", headers={"X-API-KEY": "secret-key"}).status_code == 200
    assert client.get("/health").status_code == 200


def test_import_ids_then_read_back(client):
    response = client.post("/orders/import-ids", json={"orderIds": ["1234567"]})

    assert response.status_code == 200
    assert response.json() == {"scanned": 1, "imported": 1, "skipped": 0, "empty": 0}

    orders = client.get("/orders").json()
    assert list(orders) == ["1234567"]
    assert orders["1234567"]["otherUser"]["username"] == "CardShop"
    assert client.get("/orders/1234567").json()["summary"]["articleCount"] == 3


def test_import_range(client):
    response = client.post("/orders/import-range", json={"startDate": "2024-03-31", "endDate": "2024-03-01"})

    assert response.status_code == 200
    assert response.json()["imported"] == 1


def test_import_range_rejects_inverted_dates(client):
    response = client.post("/orders/import-range", json={"startDate": "2024-01-01", "endDate": "2024-02-01"})

    assert response.status_code == 400


def test_login_failure_maps_to_401(client, session):
    async def broken_login():
        raise LoginError("Login form not found")

    session.ensure_logged_in = broken_login

    response = client.post("/orders/import-ids", json={"orderIds": ["1"]})

    assert response.status_code == 401


def test_missing_order_and_delete(client, runner):
    asyncio.run(runner.orders.upsert_order(parse_order_html(BUY_ORDER_HTML, get_order_url("1234567"))))

    assert client.get("/orders/999").status_code == 404
    assert client.delete("/orders/999").status_code == 404
    assert client.delete("/orders/1234567").json() == {"success": True}
    assert client.get("/orders").json() == {}


def test_product_fetch_favorite_and_delete(client):
    fetched = client.post("/products/fetch", json={"url": PRODUCT_URL})
    assert fetched.status_code == 200
    assert fetched.json()["priceAverages"]["average30Day"] == pytest.approx(1.25)

    assert client.post("/products/favorite", json={"productId": SLUG, "favorite": True}).json() == {"success": True}
    products = client.get("/products").json()
    assert products[0]["productId"] == SLUG
    assert products[0]["favorite"] is True

    assert client.post("/products/favorite", json={"productId": "nope", "favorite": True}).status_code == 404
    assert client.delete("/products", params={"productId": SLUG}).status_code == 200
    assert client.delete("/products", params={"productId": SLUG}).status_code == 404


def test_article_stats(client):
    client.post("/orders/import-ids", json={"orderIds": ["1234567"]})

    stats = client.get("/articles/stats").json()

    names = {item["articleName"] for item in stats}
    assert names == {"Monkey D Luffy", "Roronoa Zoro"}
    assert all("netProfitLoss" in item for item in stats)
