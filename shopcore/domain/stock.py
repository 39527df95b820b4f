"""Stock levels and the append-only adjustment ledger.

A StockLevel is the materialized running sum of every StockAdjustment
recorded for its (item, location) pair. Adjustments are never edited or
deleted; a mistake is fixed with another adjustment.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from shopcore.domain.exceptions import InvalidQuantityError
from shopcore.domain.value_objects import AdjustmentId


class AdjustmentReason(str, Enum):
    """Why a stock level changed."""

    SALE = "sale"
    BUNDLE_SALE = "bundle_sale"
    RETURN = "return"
    EXCHANGE_IN = "exchange_in"
    EXCHANGE_OUT = "exchange_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    RECEIVING = "receiving"
    CORRECTION = "correction"


@dataclass(frozen=True)
class StockLevel:
    """Current quantity of an item at a location."""

    item_id: str
    location_id: str
    quantity: int


@dataclass(frozen=True)
class StockAdjustment:
    """One immutable ledger row.

    Attributes:
        item_id: Item whose stock changed.
        location_id: Location whose stock changed.
        delta: Signed change; never zero.
        reason: Why the stock changed.
        related_order_id: Order that caused the change, if any.
        related_line_id: Order line that caused the change, if any.
        correction: Audit corrections may drive the level negative.
        note: Free-text explanation shown in the adjustments table.
        id: Ledger row id.
        created_at: When the row was recorded.
        resulting_level: Level after the change, filled in by the store.
    """

    item_id: str
    location_id: str
    delta: int
    reason: AdjustmentReason
    related_order_id: str | None = None
    related_line_id: str | None = None
    correction: bool = False
    note: str | None = None
    id: AdjustmentId = field(default_factory=AdjustmentId.generate)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resulting_level: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.delta, bool) or not isinstance(self.delta, int):
            raise InvalidQuantityError(self.delta, "Adjustment delta must be an integer")
        if self.delta == 0:
            raise InvalidQuantityError(0, "Adjustment delta must not be zero")

    @property
    def is_decrement(self) -> bool:
        return self.delta < 0

    @property
    def order_key(self) -> tuple[str, str, str, str] | None:
        """Identity of an order-driven adjustment, used to refuse duplicates."""
        if self.related_order_id is None or self.related_line_id is None:
            return None
        return (self.related_order_id, self.related_line_id, self.item_id, self.location_id)
