"""The monitoring dashboard as served from the API app."""

import pytest
from fastapi.testclient import TestClient

CUSTOMER = {"X-User-Id": "u1"}


@pytest.fixture()
def client(container):
    from app import create_app

    return TestClient(create_app(container))


def test_reports_on_the_app_stores(client, place_order):
    place_order()

    outbox = client.get("/monitor/outbox").json()

    assert outbox["status"] == "ok"
    assert outbox["counts"] == {"PENDING": 0, "PUBLISHED": 1}


def test_health_degrades_on_dead_letters(client, container):
    def broken(envelope):
        raise RuntimeError("view store unavailable")

    container.channel.subscribe(broken)
    response = client.post(
        "/orders",
        json={
            "items": [{"product_id": "p1", "quantity": 1, "unit_price": "5.00"}],
            "shipping_address": "1 Main St",
            "billing_address": "1 Main St",
        },
        headers=CUSTOMER,
    )
    assert response.status_code == 201

    health = client.get("/monitor/health").json()

    assert health["status"] == "degraded"
    assert health["channel"]["dead_letters"] == 1
    assert client.get("/monitor/channel").json()["dead_letters"][0]["consumer"].endswith("broken")
