"""Tests for checkout and order API endpoints.

Covers the full flow from cart to placed order, rejections that persist
nothing, idempotent retries and stock reconciliation queries.
"""

from decimal import Decimal

from fastapi import status
from fastapi.testclient import TestClient

from shopcore.infrastructure import rate_client
from shopcore.infrastructure.rate_client import StaticTaxRateLookup
from shopcore.infrastructure.store import get_inventory_store


# ============================================================================
# Helpers
# ============================================================================


def open_cart(client: TestClient) -> str:
    response = client.post("/carts", json={"location_id": "store-1", "customer_id": "cust-1"})
    return response.json()["id"]


def add_item(client: TestClient, cart_id: str, item_id: str, quantity: int = 1, kind: str = "product"):
    response = client.post(
        f"/carts/{cart_id}/items",
        json={"kind": kind, "item_id": item_id, "quantity": quantity},
    )
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def checkout(client: TestClient, cart_id: str, payment_id: str = "pay-1", **overrides):
    body = {
        "cart_id": cart_id,
        "customer_id": "cust-1",
        "location_id": "store-1",
        "payment_id": payment_id,
        "payment_method": "card",
    }
    body.update(overrides)
    return client.post("/checkouts", json=body)


def stock(client: TestClient, item_id: str) -> int:
    return client.get(f"/inventory/stock/{item_id}/store-1").json()["quantity"]


# ============================================================================
# Test: Checkout
# ============================================================================


class TestCheckout:
    """Tests for POST /checkouts."""

    def test_reference_order_total(self, seeded_client: TestClient, monkeypatch) -> None:
        """Two $20 phones, 8% tax, $5 shipping and 10% off total $44.20."""
        monkeypatch.setattr(
            rate_client, "_tax_lookup", StaticTaxRateLookup({"electronics": Decimal("8")})
        )
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK", 2)
        seeded_client.post(f"/carts/{cart_id}/discount", json={"source": "manual", "percent_off": "10"})

        response = checkout(seeded_client, cart_id)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["outcome"] == "order_created"
        assert data["failed_lines"] == []
        assert data["order"]["total"]["amount"] == 4420
        assert data["order"]["tax"]["amount"] == 320
        assert stock(seeded_client, "PHONE-BLK") == 8

    def test_cart_emptied_after_order(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "KIT-1", 1, kind="bundle")

        checkout(seeded_client, cart_id)

        cart = seeded_client.get(f"/carts/{cart_id}").json()
        assert cart["lines"] == []
        assert cart["totals"]["active_discount"]["source"] == "none"
        assert stock(seeded_client, "SCREEN") == 3
        assert stock(seeded_client, "GLUE") == 2

    def test_unknown_cart(self, client: TestClient) -> None:
        response = checkout(client, "missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "CART_NOT_FOUND"

    def test_empty_cart(self, seeded_client: TestClient) -> None:
        response = checkout(seeded_client, open_cart(seeded_client))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "CART_EMPTY"

    def test_uncaptured_payment(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")

        response = checkout(seeded_client, cart_id, payment_captured=False)

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert stock(seeded_client, "PHONE-BLK") == 10

    def test_location_mismatch(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")

        response = checkout(seeded_client, cart_id, location_id="store-2")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_stock_sold_elsewhere_rejects(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "KIT-1", 2, kind="bundle")
        seeded_client.post(
            "/inventory/adjustments",
            json={"item_id": "SCREEN", "location_id": "store-1", "delta": -2, "reason": "correction"},
        )

        response = checkout(seeded_client, cart_id)

        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["error_code"] == "INSUFFICIENT_STOCK"
        assert data["details"]["item_id"] == "SCREEN"
        assert stock(seeded_client, "GLUE") == 3

    def test_retry_with_same_payment(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK", 3)
        first = checkout(seeded_client, cart_id, payment_id="pay-9").json()

        retry_cart = open_cart(seeded_client)
        add_item(seeded_client, retry_cart, "PHONE-BLK", 3)
        second = checkout(seeded_client, retry_cart, payment_id="pay-9")

        assert second.status_code == status.HTTP_201_CREATED
        assert second.json()["order_id"] == first["order_id"]
        assert stock(seeded_client, "PHONE-BLK") == 7


# ============================================================================
# Test: Orders
# ============================================================================


class TestOrders:
    """Tests for /orders."""

    def test_get_order(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "KIT-1", 1, kind="bundle")
        order_id = checkout(seeded_client, cart_id).json()["order_id"]

        response = seeded_client.get(f"/orders/{order_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["payment_id"] == "pay-1"
        assert data["discount_label"] == "bundle:KIT-1"
        assert data["lines"][0]["kind"] == "bundle"
        assert len(data["lines"][0]["components"]) == 2

    def test_unknown_order(self, client: TestClient) -> None:
        assert client.get("/orders/missing").status_code == status.HTTP_404_NOT_FOUND
        assert client.get("/orders/missing/reconciliation").status_code == 404
        assert client.post("/orders/missing/resume").status_code == 404

    def test_reconciled_order(self, seeded_client: TestClient) -> None:
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")
        order_id = checkout(seeded_client, cart_id).json()["order_id"]

        data = seeded_client.get(f"/orders/{order_id}/reconciliation").json()

        assert data["status"] == "reconciled"
        assert data["pending_line_ids"] == []
        assert len(data["reconciled_line_ids"]) == 1

    def test_partial_order_then_resume(self, seeded_client: TestClient, monkeypatch) -> None:
        store = get_inventory_store()
        create_order = store.create_order

        async def create_then_sell_glue(order):
            await create_order(order)
            store._levels[("GLUE", "store-1")] = 0

        monkeypatch.setattr(store, "create_order", create_then_sell_glue)
        cart_id = open_cart(seeded_client)
        add_item(seeded_client, cart_id, "PHONE-BLK")
        add_item(seeded_client, cart_id, "KIT-1", 1, kind="bundle")

        response = checkout(seeded_client, cart_id)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["outcome"] == "order_created_with_stock_issues"
        assert [f["item_id"] for f in data["failed_lines"]] == ["KIT-1"]
        order_id = data["order_id"]
        pending = seeded_client.get(f"/orders/{order_id}/reconciliation").json()
        assert pending["status"] == "pending"

        seeded_client.post(
            "/inventory/adjustments",
            json={"item_id": "GLUE", "location_id": "store-1", "delta": 1, "reason": "receiving"},
        )
        resumed = seeded_client.post(f"/orders/{order_id}/resume")

        assert resumed.json()["outcome"] == "order_created"
        assert stock(seeded_client, "PHONE-BLK") == 9
        assert stock(seeded_client, "GLUE") == 0
        assert stock(seeded_client, "SCREEN") == 3
