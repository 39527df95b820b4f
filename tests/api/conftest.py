"""Shared fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from shopcore.main import app

LOCATION = "store-1"


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


def _receive(client: TestClient, item_id: str, quantity: int, location_id: str = LOCATION) -> None:
    response = client.post(
        "/inventory/adjustments",
        json={
            "item_id": item_id,
            "location_id": location_id,
            "delta": quantity,
            "reason": "receiving",
        },
    )
    assert response.status_code == 201, response.text


@pytest.fixture
def seeded_client(client: TestClient) -> TestClient:
    """Client whose store holds a phone, a repair kit bundle and their stock."""
    products = [
        {
            "item_id": "PHONE-BLK",
            "name": "Phone, black",
            "price": "20.00",
            "category": "electronics",
            "shipping_cost": "5.00",
        },
        {"item_id": "SCREEN", "name": "Screen", "price": "6.00"},
        {"item_id": "GLUE", "name": "Glue", "price": "4.00"},
    ]
    for product in products:
        assert client.post("/catalog/products", json=product).status_code == 201

    response = client.post(
        "/catalog/bundles",
        json={
            "bundle_id": "KIT-1",
            "name": "Screen repair kit",
            "price": "12.00",
            "components": [
                {"component_item_id": "SCREEN", "required_quantity": 2, "unit_cost": "5.00"},
                {"component_item_id": "GLUE", "required_quantity": 1, "unit_cost": "3.00"},
            ],
            "percent_off": "15",
        },
    )
    assert response.status_code == 201, response.text

    _receive(client, "PHONE-BLK", 10)
    _receive(client, "SCREEN", 5)
    _receive(client, "GLUE", 3)
    return client
