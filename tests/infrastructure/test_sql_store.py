"""Tests for the SQL inventory store, run against SQLite."""

from decimal import Decimal

import pytest
import pytest_asyncio

from shopcore.application.checkout_service import CheckoutOrchestrator, OrderCreated
from shopcore.domain import (
    Bundle,
    BundleComponent,
    Cart,
    CatalogProduct,
    CustomerProfile,
    ItemKind,
    LineItem,
    Money,
    Order,
    PaymentConfirmation,
    StockAdjustment,
    StockAvailability,
)
from shopcore.domain.exceptions import (
    DuplicateAdjustmentError,
    DuplicateOrderError,
    InsufficientStockError,
)
from shopcore.domain.stock import AdjustmentReason
from shopcore.infrastructure.database import create_engine, create_session_factory, init_models
from shopcore.infrastructure.sql_store import SqlInventoryStore


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/shopcore.sqlite")
    await init_models(engine)
    yield SqlInventoryStore(create_session_factory(engine))
    await engine.dispose()


def sale(item_id: str, delta: int, order_id: str | None = None, line_id: str | None = None):
    return StockAdjustment(
        item_id=item_id,
        location_id="store-1",
        delta=delta,
        reason=AdjustmentReason.SALE,
        related_order_id=order_id,
        related_line_id=line_id,
    )


class TestStockLevels:
    """Tests for conditional stock updates."""

    @pytest.mark.asyncio
    async def test_seed_creates_row_and_ledger(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 4)

        level = await sql_store.get_level("SCREEN", "store-1")
        rows = await sql_store.list_adjustments(item_id="SCREEN")
        assert level.quantity == 4
        assert [r.delta for r in rows] == [4]
        assert rows[0].resulting_level == 4

    @pytest.mark.asyncio
    async def test_missing_level(self, sql_store):
        assert await sql_store.get_level("SCREEN", "store-1") is None
        assert await sql_store.get_levels(["SCREEN"], ["store-1"]) == {}

    @pytest.mark.asyncio
    async def test_decrement_within_stock(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 4)

        [row] = await sql_store.apply_adjustments([sale("SCREEN", -3)])

        assert row.resulting_level == 1
        assert await sql_store.get_levels(["SCREEN"], ["store-1"]) == {("SCREEN", "store-1"): 1}

    @pytest.mark.asyncio
    async def test_decrement_below_zero_refused(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 2)

        with pytest.raises(InsufficientStockError) as exc:
            await sql_store.apply_adjustments([sale("SCREEN", -3)])

        assert exc.value.details["available"] == 2
        assert (await sql_store.get_level("SCREEN", "store-1")).quantity == 2

    @pytest.mark.asyncio
    async def test_decrement_of_unstocked_item_refused(self, sql_store):
        with pytest.raises(InsufficientStockError):
            await sql_store.apply_adjustments([sale("SCREEN", -1)])

    @pytest.mark.asyncio
    async def test_batch_is_all_or_nothing(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 5)
        await sql_store.seed_stock("GLUE", "store-1", 0)

        with pytest.raises(InsufficientStockError):
            await sql_store.apply_adjustments([sale("SCREEN", -2), sale("GLUE", -1)])

        assert (await sql_store.get_level("SCREEN", "store-1")).quantity == 5
        assert len(await sql_store.list_adjustments(item_id="SCREEN")) == 1

    @pytest.mark.asyncio
    async def test_correction_may_go_negative(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 1)
        correction = StockAdjustment(
            item_id="SCREEN",
            location_id="store-1",
            delta=-3,
            reason=AdjustmentReason.CORRECTION,
            correction=True,
        )

        [row] = await sql_store.apply_adjustments([correction])

        assert row.resulting_level == -2

    @pytest.mark.asyncio
    async def test_duplicate_order_line_refused(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 5)
        await sql_store.apply_adjustments([sale("SCREEN", -1, "order-1", "line-1")])

        with pytest.raises(DuplicateAdjustmentError):
            await sql_store.apply_adjustments([sale("SCREEN", -1, "order-1", "line-1")])

        assert (await sql_store.get_level("SCREEN", "store-1")).quantity == 4

    @pytest.mark.asyncio
    async def test_list_locations(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-2", 1)
        await sql_store.seed_stock("SCREEN", "store-1", 1)

        assert await sql_store.list_locations() == ["store-1", "store-2"]


class TestCatalog:
    """Tests for catalog persistence."""

    @pytest.mark.asyncio
    async def test_product_roundtrip_and_replace(self, sql_store):
        await sql_store.add_product(
            CatalogProduct(item_id="CASE", name="Case", price=Decimal("19.99"), category="accessories")
        )
        await sql_store.add_product(CatalogProduct(item_id="CASE", name="Case v2", price=Decimal("21")))

        product = await sql_store.get_product("CASE")
        assert product.name == "Case v2"
        assert product.price == Decimal("21")

    @pytest.mark.asyncio
    async def test_bundle_keeps_component_order(self, sql_store):
        bundle = Bundle(
            bundle_id="KIT-1",
            name="Kit",
            price=Decimal("12.00"),
            components=(
                BundleComponent("SCREEN", 2, Decimal("5.00")),
                BundleComponent("GLUE", 1, Decimal("3.00")),
            ),
            percent_off=Decimal("10"),
        )
        await sql_store.add_bundle(bundle)

        loaded = await sql_store.get_bundle("KIT-1")

        assert [c.component_item_id for c in loaded.components] == ["SCREEN", "GLUE"]
        assert loaded.percent_off == Decimal("10")
        assert await sql_store.get_bundle("NOPE") is None


class TestOrders:
    """Tests for order and customer persistence."""

    @pytest.mark.asyncio
    async def test_customer_upsert(self, sql_store):
        await sql_store.upsert_customer(CustomerProfile("cust-1", last_location_id="store-1"))
        await sql_store.upsert_customer(CustomerProfile("cust-1", last_location_id="store-2"))

        profile = await sql_store.get_customer("cust-1")
        assert profile.last_location_id == "store-2"

    @pytest.mark.asyncio
    async def test_checkout_end_to_end(self, sql_store):
        await sql_store.seed_stock("SCREEN", "store-1", 5)
        await sql_store.seed_stock("GLUE", "store-1", 5)
        cart = Cart.create(location_id="store-1")
        cart.add_item(
            LineItem.create(
                kind=ItemKind.BUNDLE,
                item_id="KIT-1",
                name="Kit",
                unit_price=Money.from_decimal(Decimal("12.00")),
                quantity=2,
                components=(BundleComponent("SCREEN", 2), BundleComponent("GLUE", 1)),
            ),
            StockAvailability(item_id="KIT-1", location_id="store-1", sellable_quantity=2),
        )
        payment = PaymentConfirmation(payment_id="pay-1")

        result = await CheckoutOrchestrator(sql_store).commit(cart, "cust-1", "store-1", payment)

        assert isinstance(result, OrderCreated)
        order = await sql_store.get_order(result.order_id)
        assert order.total == Money(amount_cents=2400)
        assert order.lines[0].components[0].component_item_id == "SCREEN"
        assert (await sql_store.get_order_by_payment("pay-1")).id == order.id
        assert (await sql_store.get_level("SCREEN", "store-1")).quantity == 1
        assert (await sql_store.get_level("GLUE", "store-1")).quantity == 3
        rows = await sql_store.list_adjustments(related_order_id=result.order_id)
        assert {r.reason for r in rows} == {AdjustmentReason.BUNDLE_SALE}

    @pytest.mark.asyncio
    async def test_second_order_for_payment_refused(self, sql_store):
        cart = Cart.create(location_id="store-1")
        cart.add_item(
            LineItem.create(
                kind=ItemKind.PRODUCT,
                item_id="CASE",
                name="Case",
                unit_price=Money(amount_cents=1000),
            )
        )
        await sql_store.create_order(Order.place(cart, "cust-1", "pay-1"))

        with pytest.raises(DuplicateOrderError) as exc_info:
            await sql_store.create_order(Order.place(cart, "cust-1", "pay-1"))
        assert exc_info.value.payment_id == "pay-1"
