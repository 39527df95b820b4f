"""Tests for cart API endpoints.

Covers:
- Opening carts
- Adding products and bundles against location stock
- Quantity changes and removal
- The single cart discount
- Shipping destination quotes
"""

from fastapi import status
from fastapi.testclient import TestClient

from shopcore.infrastructure import rate_client
from shopcore.infrastructure.rate_client import StaticShippingRateLookup


def open_cart(client: TestClient) -> str:
    response = client.post("/carts", json={"location_id": "store-1", "customer_id": "cust-1"})
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["id"]


def add_item(client: TestClient, cart_id: str, item_id: str, quantity: int = 1, kind: str = "product"):
    return client.post(
        f"/carts/{cart_id}/items",
        json={"kind": kind, "item_id": item_id, "quantity": quantity},
    )


class TestCreateCart:
    """Tests for POST /carts."""

    def test_create_cart(self, client: TestClient) -> None:
        response = client.post("/carts", json={"location_id": "store-1"})

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["location_id"] == "store-1"
        assert data["lines"] == []
        assert data["totals"]["total"]["amount"] == 0

    def test_location_required(self, client: TestClient) -> None:
        response = client.post("/carts", json={})
        assert response.status_code == 422

    def test_get_unknown_cart(self, client: TestClient) -> None:
        response = client.get("/carts/missing")
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestAddItems:
    """Tests for POST /carts/{id}/items."""

    def test_add_product(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = add_item(seeded_client, cart_id, "PHONE-BLK", 2)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["lines"][0]["quantity"] == 2
        assert data["totals"]["subtotal"]["amount"] == 4000
        assert data["totals"]["shipping"]["amount"] == 500

    def test_add_bundle_applies_discount(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = add_item(seeded_client, cart_id, "KIT-1", 2, kind="bundle")

        assert response.status_code == status.HTTP_201_CREATED
        totals = response.json()["totals"]
        assert totals["subtotal"]["amount"] == 2400
        assert totals["discount"]["amount"] == 360
        assert totals["active_discount"]["label"] == "bundle:KIT-1"

    def test_bundle_over_availability_conflicts(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = add_item(seeded_client, cart_id, "KIT-1", 3, kind="bundle")

        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["error_code"] == "INSUFFICIENT_STOCK"
        assert data["details"]["limiting_components"] == ["SCREEN"]

    def test_zero_quantity_rejected(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = add_item(seeded_client, cart_id, "PHONE-BLK", 0)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_QUANTITY"

    def test_unknown_item(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = add_item(seeded_client, cart_id, "NOPE")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestLineChanges:
    """Tests for PATCH/DELETE on cart lines."""

    def test_update_and_remove(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        line_id = add_item(seeded_client, cart_id, "PHONE-BLK").json()["lines"][0]["id"]

        response = seeded_client.patch(f"/carts/{cart_id}/items/{line_id}", json={"quantity": 4})
        assert response.json()["totals"]["item_count"] == 4

        response = seeded_client.delete(f"/carts/{cart_id}/items/{line_id}")
        assert response.status_code == 200
        assert response.json()["lines"] == []

    def test_update_beyond_stock(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        line_id = add_item(seeded_client, cart_id, "PHONE-BLK").json()["lines"][0]["id"]

        response = seeded_client.patch(f"/carts/{cart_id}/items/{line_id}", json={"quantity": 11})

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unknown_line(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = seeded_client.delete(f"/carts/{cart_id}/items/not-a-line")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "LINE_NOT_FOUND"

    def test_clear(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")

        response = seeded_client.delete(f"/carts/{cart_id}/items")

        assert response.json()["totals"]["item_count"] == 0


class TestDiscount:
    """Tests for the cart discount endpoints."""

    def test_manual_discount(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK", 2)

        response = seeded_client.post(
            f"/carts/{cart_id}/discount", json={"source": "manual", "percent_off": "10"}
        )

        assert response.json()["totals"]["discount"]["amount"] == 400

    def test_other_source_ignored_while_active(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        seeded_client.post(f"/carts/{cart_id}/discount", json={"source": "manual", "percent_off": "10"})

        response = seeded_client.post(
            f"/carts/{cart_id}/discount",
            json={"source": "automatic", "percent_off": "30", "rule": "spring-sale"},
        )

        assert response.json()["totals"]["active_discount"]["source"] == "manual"

    def test_invalid_percent(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)

        response = seeded_client.post(
            f"/carts/{cart_id}/discount", json={"source": "manual", "percent_off": "101"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_DISCOUNT"

    def test_clear_discount(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        seeded_client.post(f"/carts/{cart_id}/discount", json={"source": "manual", "percent_off": "10"})

        response = seeded_client.delete(f"/carts/{cart_id}/discount")

        assert response.json()["totals"]["active_discount"]["source"] == "none"


class TestShipping:
    def test_destination_quote(self, seeded_client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(
            rate_client, "_shipping_lookup", StaticShippingRateLookup({"NY": "9.99"})
        )
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")

        response = seeded_client.put(f"/carts/{cart_id}/shipping", json={"state_code": "ny"})

        data = response.json()
        assert data["shipping_state"] == "NY"
        assert data["totals"]["shipping"]["amount"] == 500 + 999

    def test_totals_endpoint(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")

        response = seeded_client.get(f"/carts/{cart_id}/totals")

        assert response.json()["total"]["amount"] == 2500
