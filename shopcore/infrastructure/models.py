"""SQLAlchemy models for database tables.

Provides ORM models for stock levels, the adjustment ledger, orders,
customers and the product/bundle catalog.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from shopcore.infrastructure.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JsonType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Stock Models
# ============================================================================


class StockLevelModel(Base):
    """Materialized stock level of an item at a location."""

    __tablename__ = "stock_levels"

    item_id = Column(String(100), primary_key=True)
    location_id = Column(String(100), primary_key=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<StockLevelModel {self.item_id}@{self.location_id}={self.quantity}>"


class StockAdjustmentModel(Base):
    """Append-only ledger row.

    The unique index on the order line columns refuses a second decrement
    for the same order line, item and location. Rows without an order
    (NULL ids) are never considered duplicates.
    """

    __tablename__ = "stock_adjustments"

    id = Column(String(36), primary_key=True)
    item_id = Column(String(100), nullable=False)
    location_id = Column(String(100), nullable=False)
    delta = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False)
    related_order_id = Column(String(36), nullable=True, index=True)
    related_line_id = Column(String(36), nullable=True)
    correction = Column(Boolean, nullable=False, default=False)
    note = Column(Text, nullable=True)
    resulting_level = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_stock_adjustments_item_location", "item_id", "location_id"),
        Index(
            "uq_stock_adjustments_order_line",
            "related_order_id",
            "related_line_id",
            "item_id",
            "location_id",
            unique=True,
        ),
    )


# ============================================================================
# Order Models
# ============================================================================


class OrderModel(Base):
    """Placed order header with frozen totals."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(100), nullable=False, index=True)
    location_id = Column(String(100), nullable=False)
    payment_id = Column(String(100), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="placed")

    # Totals
    subtotal_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, nullable=False, default=0)
    discount_label = Column(String(100), nullable=False, default="none")
    tax_cents = Column(Integer, nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    lines = relationship(
        "OrderLineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineModel.position",
        lazy="selectin",
    )


class OrderLineModel(Base):
    """Price-frozen line of an order."""

    __tablename__ = "order_lines"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    kind = Column(String(20), nullable=False)
    item_id = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    tax_rate = Column(Numeric(7, 3), nullable=False, default=0)
    shipping_cents = Column(Integer, nullable=False, default=0)
    components = Column(JsonType, nullable=False, default=list)

    order = relationship("OrderModel", back_populates="lines")


class CustomerModel(Base):
    """Customer preferences kept by checkout."""

    __tablename__ = "customers"

    id = Column(String(100), primary_key=True)
    last_location_id = Column(String(100), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ============================================================================
# Catalog Models
# ============================================================================


class CatalogProductModel(Base):
    """Sellable product variation."""

    __tablename__ = "catalog_products"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    category = Column(String(100), nullable=True, index=True)
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)


class BundleModel(Base):
    """Composite product sold as one unit."""

    __tablename__ = "bundles"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    percent_off = Column(Numeric(5, 2), nullable=True)
    category = Column(String(100), nullable=True)

    components = relationship(
        "BundleComponentModel",
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleComponentModel.position",
        lazy="selectin",
    )


class BundleComponentModel(Base):
    """Item consumed by a bundle."""

    __tablename__ = "bundle_components"

    bundle_id = Column(String(100), ForeignKey("bundles.id"), primary_key=True)
    component_item_id = Column(String(100), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    required_quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)

    bundle = relationship("BundleModel", back_populates="components")
