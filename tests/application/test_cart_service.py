"""Tests for the cart application service."""

from decimal import Decimal

import pytest
import pytest_asyncio

from shopcore.application.cart_service import CartRepository, CartService
from shopcore.domain import Bundle, BundleComponent, CatalogProduct
from shopcore.domain.discounts import BundleDiscount, DiscountSource, ManualDiscount
from shopcore.domain.exceptions import RateLookupError
from shopcore.domain.value_objects import Money
from shopcore.infrastructure.memory_store import InMemoryInventoryStore
from shopcore.infrastructure.rate_client import StaticShippingRateLookup, StaticTaxRateLookup

LOCATION = "store-1"


class DownTaxLookup:
    async def rate_for_category(self, category):
        raise RateLookupError("tax service unavailable")


class DownShippingLookup:
    async def rate_for_state(self, state_code):
        raise RateLookupError("shipping service unavailable")


@pytest_asyncio.fixture
async def store() -> InMemoryInventoryStore:
    store = InMemoryInventoryStore()
    await store.add_product(
        CatalogProduct(
            item_id="CASE-RED",
            name="Case, red",
            price=Decimal("20.00"),
            category="accessories",
            shipping_cost=Decimal("5.00"),
        )
    )
    await store.add_product(CatalogProduct(item_id="SCREEN", name="Screen", price=Decimal("6")))
    await store.add_product(CatalogProduct(item_id="GLUE", name="Glue", price=Decimal("4")))
    await store.add_bundle(
        Bundle(
            bundle_id="KIT-1",
            name="Screen repair kit",
            price=Decimal("12.00"),
            components=(
                BundleComponent("SCREEN", 2, Decimal("5.00")),
                BundleComponent("GLUE", 1, Decimal("3.00")),
            ),
            percent_off=Decimal("15"),
        )
    )
    await store.seed_stock("CASE-RED", LOCATION, 3)
    await store.seed_stock("SCREEN", LOCATION, 5)
    await store.seed_stock("GLUE", LOCATION, 3)
    return store


def make_service(store, **kwargs) -> CartService:
    kwargs.setdefault("cart_repo", CartRepository())
    return CartService(store, **kwargs)


async def open_cart(service: CartService) -> str:
    result = await service.create_cart(LOCATION, customer_id="cust-1")
    return str(result.cart.id)


class TestCreateCart:
    """Tests for opening carts."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        service = make_service(store)

        result = await service.create_cart(LOCATION)

        assert result.success
        assert await service.get_cart(str(result.cart.id)) is result.cart

    @pytest.mark.asyncio
    async def test_blank_location_rejected(self, store):
        result = await make_service(store).create_cart("  ")

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_cart(self, store):
        result = await make_service(store).add_product("missing", "CASE-RED")

        assert not result.success
        assert result.error_code == "CART_NOT_FOUND"


class TestAddProduct:
    """Tests for adding catalog products."""

    @pytest.mark.asyncio
    async def test_line_priced_from_catalog(self, store):
        service = make_service(
            store, tax_lookup=StaticTaxRateLookup({"accessories": Decimal("8")})
        )
        cart_id = await open_cart(service)

        result = await service.add_product(cart_id, "CASE-RED", quantity=2)

        assert result.success
        assert result.line.unit_price == Money(amount_cents=2000)
        assert result.line.tax_rate == Decimal("8")
        assert result.line.shipping_cost == Money(amount_cents=500)

    @pytest.mark.asyncio
    async def test_same_item_merges(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        await service.add_product(cart_id, "CASE-RED")
        result = await service.add_product(cart_id, "CASE-RED", quantity=2)

        assert len(result.cart.lines) == 1
        assert result.line.quantity == 3

    @pytest.mark.asyncio
    async def test_different_options_kept_apart(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        await service.add_product(cart_id, "CASE-RED", options={"size": "S"})
        result = await service.add_product(cart_id, "CASE-RED", options={"size": "L"})

        assert len(result.cart.lines) == 2

    @pytest.mark.asyncio
    async def test_more_than_stock_rejected(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        await service.add_product(cart_id, "CASE-RED", quantity=2)

        result = await service.add_product(cart_id, "CASE-RED", quantity=2)

        assert not result.success
        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.details["available"] == 3
        assert result.cart.item_count == 2

    @pytest.mark.asyncio
    async def test_unknown_product(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.add_product(cart_id, "NOPE")

        assert result.error_code == "ITEM_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_tax_lookup_down_uses_default(self, store):
        service = make_service(
            store, tax_lookup=DownTaxLookup(), default_tax_percent=Decimal("6")
        )
        cart_id = await open_cart(service)

        result = await service.add_product(cart_id, "CASE-RED")

        assert result.success
        assert result.line.tax_rate == Decimal("6")


class TestAddBundle:
    """Tests for adding bundles."""

    @pytest.mark.asyncio
    async def test_bundle_applies_its_discount(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.add_bundle(cart_id, "KIT-1", quantity=2)

        assert result.success
        assert result.cart.discount == BundleDiscount(bundle_id="KIT-1", percent_off=Decimal("15"))

    @pytest.mark.asyncio
    async def test_bundle_limited_by_scarcest_component(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.add_bundle(cart_id, "KIT-1", quantity=3)

        assert not result.success
        assert result.error_code == "INSUFFICIENT_STOCK"
        assert result.details["available"] == 2
        assert result.details["limiting_components"] == ["SCREEN"]
        assert result.cart.is_empty

    @pytest.mark.asyncio
    async def test_manual_discount_keeps_priority(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        await service.apply_discount(cart_id, DiscountSource.MANUAL, Decimal("10"))

        result = await service.add_bundle(cart_id, "KIT-1")

        assert result.success
        assert result.cart.discount == ManualDiscount(percent_off=Decimal("10"))

    @pytest.mark.asyncio
    async def test_removing_bundle_line_clears_its_discount(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        added = await service.add_bundle(cart_id, "KIT-1")

        result = await service.remove_item(cart_id, str(added.line.id))

        assert result.success
        assert result.cart.discount.source is DiscountSource.NONE


class TestUpdateQuantity:
    """Tests for changing line quantities."""

    @pytest.mark.asyncio
    async def test_increase_checks_stock(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        added = await service.add_bundle(cart_id, "KIT-1")

        result = await service.update_quantity(cart_id, str(added.line.id), 3)

        assert result.error_code == "INSUFFICIENT_STOCK"
        assert added.line.quantity == 1

    @pytest.mark.asyncio
    async def test_zero_removes_line(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        added = await service.add_product(cart_id, "CASE-RED")

        result = await service.update_quantity(cart_id, str(added.line.id), 0)

        assert result.success
        assert result.line is None
        assert result.cart.is_empty

    @pytest.mark.asyncio
    async def test_bad_line_id(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.update_quantity(cart_id, "not-a-uuid", 2)

        assert result.error_code == "LINE_NOT_FOUND"


class TestDiscounts:
    """Tests for applying and clearing discounts."""

    @pytest.mark.asyncio
    async def test_automatic_needs_rule(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.apply_discount(cart_id, DiscountSource.AUTOMATIC, Decimal("5"))

        assert result.error_code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_out_of_range_percent(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)

        result = await service.apply_discount(cart_id, DiscountSource.MANUAL, Decimal("120"))

        assert not result.success
        assert result.cart.discount.percent_off == 0

    @pytest.mark.asyncio
    async def test_clear_then_switch_source(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        await service.apply_discount(cart_id, DiscountSource.MANUAL, Decimal("10"))

        await service.clear_discount(cart_id)
        result = await service.apply_discount(
            cart_id, DiscountSource.AUTOMATIC, Decimal("5"), rule="spring-sale"
        )

        assert result.cart.discount.describe() == "automatic:spring-sale"


class TestShipping:
    """Tests for quoting shipping by destination."""

    @pytest.mark.asyncio
    async def test_destination_quoted(self, store):
        service = make_service(
            store, shipping_lookup=StaticShippingRateLookup({"CA": Decimal("7.50")})
        )
        cart_id = await open_cart(service)

        result = await service.set_shipping_destination(cart_id, "ca")

        assert result.cart.shipping_state == "CA"
        assert result.cart.shipping_charge == Money(amount_cents=750)

    @pytest.mark.asyncio
    async def test_lookup_failure_reported(self, store):
        service = make_service(store, shipping_lookup=DownShippingLookup())
        cart_id = await open_cart(service)

        result = await service.set_shipping_destination(cart_id, "CA")

        assert result.error_code == "RATE_LOOKUP_FAILED"
        assert result.cart.shipping_state is None


class TestClearCart:
    @pytest.mark.asyncio
    async def test_clear_drops_lines_and_discount(self, store):
        service = make_service(store)
        cart_id = await open_cart(service)
        await service.add_bundle(cart_id, "KIT-1")
        await service.add_product(cart_id, "CASE-RED")

        result = await service.clear_cart(cart_id)

        assert result.cart.is_empty
        assert result.cart.totals().total == Money.zero()
