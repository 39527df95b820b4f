"""SQL inventory store on async SQLAlchemy.

Stock changes are single conditional updates::

    UPDATE stock_levels SET quantity = quantity + :delta
    WHERE item_id = :item AND location_id = :loc AND quantity + :delta >= 0

so the non-negativity check happens inside the database, never on a
value read earlier. The ledger row is inserted in the same transaction.
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import timezone
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopcore.domain.bundles import Bundle, BundleComponent
from shopcore.domain.entities import (
    CatalogProduct,
    CustomerProfile,
    ItemKind,
    Order,
    OrderLine,
)
from shopcore.domain.exceptions import (
    DuplicateAdjustmentError,
    DuplicateOrderError,
    InsufficientStockError,
    StockConflictError,
)
from shopcore.domain.state_machines import OrderStatus
from shopcore.domain.stock import AdjustmentReason, StockAdjustment, StockLevel
from shopcore.domain.value_objects import AdjustmentId, Money, OrderId
from shopcore.infrastructure.models import (
    BundleComponentModel,
    BundleModel,
    CatalogProductModel,
    CustomerModel,
    OrderLineModel,
    OrderModel,
    StockAdjustmentModel,
    StockLevelModel,
)

logger = structlog.get_logger()


# ============================================================================
# Converters
# ============================================================================


def _aware(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def adjustment_from_model(row: StockAdjustmentModel) -> StockAdjustment:
    return StockAdjustment(
        id=AdjustmentId.from_string(row.id),
        item_id=row.item_id,
        location_id=row.location_id,
        delta=row.delta,
        reason=AdjustmentReason(row.reason),
        related_order_id=row.related_order_id,
        related_line_id=row.related_line_id,
        correction=row.correction,
        note=row.note,
        created_at=_aware(row.created_at),
        resulting_level=row.resulting_level,
    )


def order_from_model(row: OrderModel) -> Order:
    currency = row.currency
    lines = tuple(
        OrderLine(
            line_id=line.id,
            kind=ItemKind(line.kind),
            item_id=line.item_id,
            name=line.name,
            unit_price=Money(line.unit_price_cents, currency),
            quantity=line.quantity,
            tax_rate=Decimal(line.tax_rate),
            shipping_cost=Money(line.shipping_cents, currency),
            components=tuple(
                BundleComponent(
                    component_item_id=c["component_item_id"],
                    required_quantity=c["required_quantity"],
                    unit_cost=Decimal(c["unit_cost"]),
                )
                for c in line.components or []
            ),
        )
        for line in row.lines
    )
    return Order(
        id=OrderId.from_string(row.id),
        customer_id=row.customer_id,
        location_id=row.location_id,
        payment_id=row.payment_id,
        lines=lines,
        subtotal=Money(row.subtotal_cents, currency),
        discount_amount=Money(row.discount_cents, currency),
        tax_amount=Money(row.tax_cents, currency),
        shipping_amount=Money(row.shipping_cents, currency),
        total=Money(row.total_cents, currency),
        discount_label=row.discount_label,
        status=OrderStatus(row.status),
        created_at=_aware(row.created_at),
    )


def bundle_from_model(row: BundleModel) -> Bundle:
    return Bundle(
        bundle_id=row.id,
        name=row.name,
        price=Decimal(row.price),
        components=tuple(
            BundleComponent(
                component_item_id=c.component_item_id,
                required_quantity=c.required_quantity,
                unit_cost=Decimal(c.unit_cost),
            )
            for c in row.components
        ),
        percent_off=Decimal(row.percent_off) if row.percent_off is not None else None,
        category=row.category,
    )


# ============================================================================
# SQL Inventory Store
# ============================================================================


class SqlInventoryStore:
    """InventoryStore backed by a relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    async def get_level(self, item_id: str, location_id: str) -> StockLevel | None:
        async with self._session_factory() as session:
            quantity = await session.scalar(
                select(StockLevelModel.quantity).where(
                    StockLevelModel.item_id == item_id,
                    StockLevelModel.location_id == location_id,
                )
            )
        if quantity is None:
            return None
        return StockLevel(item_id=item_id, location_id=location_id, quantity=quantity)

    async def get_levels(
        self, item_ids: Iterable[str], location_ids: Iterable[str]
    ) -> dict[tuple[str, str], int]:
        items = list(item_ids)
        locations = list(location_ids)
        if not items or not locations:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    StockLevelModel.item_id,
                    StockLevelModel.location_id,
                    StockLevelModel.quantity,
                ).where(
                    StockLevelModel.item_id.in_(items),
                    StockLevelModel.location_id.in_(locations),
                )
            )
            return {(row.item_id, row.location_id): row.quantity for row in result}

    async def apply_adjustments(
        self, adjustments: Sequence[StockAdjustment]
    ) -> list[StockAdjustment]:
        async with self._session_factory() as session:
            async with session.begin():
                return [await self._apply_one(session, adj) for adj in adjustments]

    async def _apply_one(self, session: AsyncSession, adj: StockAdjustment) -> StockAdjustment:
        stmt = (
            update(StockLevelModel)
            .where(
                StockLevelModel.item_id == adj.item_id,
                StockLevelModel.location_id == adj.location_id,
            )
            .values(quantity=StockLevelModel.quantity + adj.delta)
            .execution_options(synchronize_session=False)
        )
        if not adj.correction:
            stmt = stmt.where(StockLevelModel.quantity + adj.delta >= 0)
        result = await session.execute(stmt)

        if result.rowcount == 0:
            await self._explain_rejected_update(session, adj)

        resulting_level = await session.scalar(
            select(StockLevelModel.quantity).where(
                StockLevelModel.item_id == adj.item_id,
                StockLevelModel.location_id == adj.location_id,
            )
        )

        session.add(
            StockAdjustmentModel(
                id=str(adj.id),
                item_id=adj.item_id,
                location_id=adj.location_id,
                delta=adj.delta,
                reason=adj.reason.value,
                related_order_id=adj.related_order_id,
                related_line_id=adj.related_line_id,
                correction=adj.correction,
                note=adj.note,
                resulting_level=resulting_level,
                created_at=adj.created_at,
            )
        )
        try:
            await session.flush()
        except IntegrityError as e:
            raise DuplicateAdjustmentError(
                adj.related_order_id or "", adj.related_line_id or ""
            ) from e
        return replace(adj, resulting_level=resulting_level)

    async def _explain_rejected_update(self, session: AsyncSession, adj: StockAdjustment) -> None:
        """Work out why the conditional update touched no row.

        Creates the row when it is missing and the change may start it.
        Otherwise raises InsufficientStockError if the level is too low,
        or StockConflictError if it would now allow the change.
        """
        current = await session.scalar(
            select(StockLevelModel.quantity).where(
                StockLevelModel.item_id == adj.item_id,
                StockLevelModel.location_id == adj.location_id,
            )
        )
        if current is None:
            if adj.delta < 0 and not adj.correction:
                raise InsufficientStockError(
                    item_id=adj.item_id,
                    location_id=adj.location_id,
                    requested=-adj.delta,
                    available=0,
                    limiting_components=(adj.item_id,),
                )
            session.add(
                StockLevelModel(
                    item_id=adj.item_id,
                    location_id=adj.location_id,
                    quantity=adj.delta,
                )
            )
            try:
                await session.flush()
            except IntegrityError as e:
                raise StockConflictError(adj.item_id, adj.location_id) from e
            return

        if current + adj.delta < 0:
            raise InsufficientStockError(
                item_id=adj.item_id,
                location_id=adj.location_id,
                requested=-adj.delta,
                available=current,
                limiting_components=(adj.item_id,),
            )
        raise StockConflictError(adj.item_id, adj.location_id)

    async def list_adjustments(
        self,
        item_id: str | None = None,
        location_id: str | None = None,
        related_order_id: str | None = None,
    ) -> list[StockAdjustment]:
        stmt = select(StockAdjustmentModel)
        if item_id is not None:
            stmt = stmt.where(StockAdjustmentModel.item_id == item_id)
        if location_id is not None:
            stmt = stmt.where(StockAdjustmentModel.location_id == location_id)
        if related_order_id is not None:
            stmt = stmt.where(StockAdjustmentModel.related_order_id == related_order_id)
        stmt = stmt.order_by(StockAdjustmentModel.created_at, StockAdjustmentModel.id)
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [adjustment_from_model(row) for row in rows]

    async def list_locations(self) -> list[str]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(StockLevelModel.location_id).distinct().order_by(StockLevelModel.location_id)
            )
            return list(rows)

    # -------------------------------------------------------------------------
    # Orders and Customers
    # -------------------------------------------------------------------------

    async def create_order(self, order: Order) -> None:
        model = OrderModel(
            id=str(order.id),
            customer_id=order.customer_id,
            location_id=order.location_id,
            payment_id=order.payment_id,
            status=order.status.value,
            subtotal_cents=order.subtotal.amount_cents,
            discount_cents=order.discount_amount.amount_cents,
            discount_label=order.discount_label,
            tax_cents=order.tax_amount.amount_cents,
            shipping_cents=order.shipping_amount.amount_cents,
            total_cents=order.total.amount_cents,
            currency=order.total.currency,
            created_at=order.created_at,
            lines=[
                OrderLineModel(
                    id=line.line_id,
                    position=position,
                    kind=line.kind.value,
                    item_id=line.item_id,
                    name=line.name,
                    unit_price_cents=line.unit_price.amount_cents,
                    quantity=line.quantity,
                    tax_rate=line.tax_rate,
                    shipping_cents=line.shipping_cost.amount_cents,
                    components=[
                        {
                            "component_item_id": c.component_item_id,
                            "required_quantity": c.required_quantity,
                            "unit_cost": str(c.unit_cost),
                        }
                        for c in line.components
                    ],
                )
                for position, line in enumerate(order.lines)
            ],
        )
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    session.add(model)
            except IntegrityError as e:
                raise DuplicateOrderError(order.payment_id) from e
        logger.info("Order persisted", order_id=str(order.id), line_count=len(order.lines))

    async def get_order(self, order_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.get(OrderModel, order_id)
            return order_from_model(row) if row else None

    async def get_order_by_payment(self, payment_id: str) -> Order | None:
        async with self._session_factory() as session:
            row = await session.scalar(select(OrderModel).where(OrderModel.payment_id == payment_id))
            return order_from_model(row) if row else None

    async def upsert_customer(self, profile: CustomerProfile) -> CustomerProfile:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    CustomerModel(
                        id=profile.customer_id,
                        last_location_id=profile.last_location_id,
                        updated_at=profile.updated_at,
                    )
                )
        return profile

    async def get_customer(self, customer_id: str) -> CustomerProfile | None:
        async with self._session_factory() as session:
            row = await session.get(CustomerModel, customer_id)
            if row is None:
                return None
            return CustomerProfile(
                customer_id=row.id,
                last_location_id=row.last_location_id,
                updated_at=_aware(row.updated_at),
            )

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def get_product(self, item_id: str) -> CatalogProduct | None:
        async with self._session_factory() as session:
            row = await session.get(CatalogProductModel, item_id)
            if row is None:
                return None
            return CatalogProduct(
                item_id=row.id,
                name=row.name,
                price=Decimal(row.price),
                category=row.category,
                shipping_cost=Decimal(row.shipping_cost),
            )

    async def get_bundle(self, bundle_id: str) -> Bundle | None:
        async with self._session_factory() as session:
            row = await session.get(BundleModel, bundle_id)
            return bundle_from_model(row) if row else None

    async def add_product(self, product: CatalogProduct) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.merge(
                    CatalogProductModel(
                        id=product.item_id,
                        name=product.name,
                        price=product.price,
                        category=product.category,
                        shipping_cost=product.shipping_cost,
                    )
                )

    async def add_bundle(self, bundle: Bundle) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    BundleModel(
                        id=bundle.bundle_id,
                        name=bundle.name,
                        price=bundle.price,
                        percent_off=bundle.percent_off,
                        category=bundle.category,
                        components=[
                            BundleComponentModel(
                                component_item_id=c.component_item_id,
                                position=position,
                                required_quantity=c.required_quantity,
                                unit_cost=c.unit_cost,
                            )
                            for position, c in enumerate(bundle.components)
                        ],
                    )
                )

    async def seed_stock(self, item_id: str, location_id: str, quantity: int) -> None:
        """Book opening stock as a RECEIVING adjustment so replay stays exact."""
        if quantity == 0:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.merge(
                        StockLevelModel(item_id=item_id, location_id=location_id, quantity=0)
                    )
            return
        await self.apply_adjustments(
            [
                StockAdjustment(
                    item_id=item_id,
                    location_id=location_id,
                    delta=quantity,
                    reason=AdjustmentReason.RECEIVING,
                    note="Opening stock",
                )
            ]
        )
