"""Stock ledger.

The one path through which stock levels change. Every change is an
immutable StockAdjustment recorded atomically with the level update, so
the current level can always be rebuilt by replaying the ledger.
Checkout, returns, exchanges, transfers, receiving and manual
corrections all go through here.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from shopcore.application.ports import InventoryStore
from shopcore.domain.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    StockConflictError,
    ValidationError,
)
from shopcore.domain.stock import AdjustmentReason, StockAdjustment

logger = structlog.get_logger()


@dataclass(frozen=True)
class AdjustmentRequest:
    """One requested stock change, before it is recorded."""

    item_id: str
    location_id: str
    delta: int
    reason: AdjustmentReason
    related_order_id: str | None = None
    related_line_id: str | None = None
    correction: bool = False
    note: str | None = None

    def to_adjustment(self) -> StockAdjustment:
        return StockAdjustment(
            item_id=self.item_id,
            location_id=self.location_id,
            delta=self.delta,
            reason=self.reason,
            related_order_id=self.related_order_id,
            related_line_id=self.related_line_id,
            correction=self.correction,
            note=self.note,
        )


@dataclass(frozen=True)
class StockAudit:
    """Materialized level compared with the sum of its ledger rows."""

    item_id: str
    location_id: str
    materialized: int
    ledger_sum: int
    adjustment_count: int

    @property
    def consistent(self) -> bool:
        return self.materialized == self.ledger_sum

    @property
    def drift(self) -> int:
        return self.materialized - self.ledger_sum


def _require_positive(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


class StockLedger:
    """Append-only stock adjustments on top of an InventoryStore."""

    def __init__(
        self,
        store: InventoryStore,
        conflict_retries: int = 1,
        request_id: str | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Inventory store that applies adjustments atomically.
            conflict_retries: Times a lost race is retried after
                re-reading the level.
            request_id: Request ID for log correlation.
        """
        self.store = store
        self.conflict_retries = conflict_retries
        self.request_id = request_id

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def adjust(
        self,
        item_id: str,
        location_id: str,
        delta: int,
        reason: AdjustmentReason,
        related_order_id: str | None = None,
        related_line_id: str | None = None,
        correction: bool = False,
        note: str | None = None,
    ) -> StockAdjustment:
        """Record one stock change.

        Non-correction adjustments that would make the level negative are
        rejected and leave the level as it was.

        Raises:
            InvalidQuantityError: If delta is zero.
            InsufficientStockError: If the level would go negative.
            StockConflictError: If the retry also lost the race.
            DuplicateAdjustmentError: If this order line was already
                adjusted for the item.
        """
        request = AdjustmentRequest(
            item_id=item_id,
            location_id=location_id,
            delta=delta,
            reason=reason,
            related_order_id=related_order_id,
            related_line_id=related_line_id,
            correction=correction,
            note=note,
        )
        recorded = await self.adjust_many([request])
        return recorded[0]

    async def adjust_many(self, requests: Sequence[AdjustmentRequest]) -> list[StockAdjustment]:
        """Record several stock changes as one all-or-nothing batch."""
        if not requests:
            raise ValidationError("No stock adjustments requested")
        adjustments = [r.to_adjustment() for r in requests]

        attempt = 0
        while True:
            try:
                recorded = await self.store.apply_adjustments(adjustments)
            except StockConflictError as e:
                if attempt >= self.conflict_retries:
                    logger.warning(
                        "Stock conflict persisted after retry",
                        item_id=e.item_id,
                        location_id=e.location_id,
                        request_id=self.request_id,
                    )
                    raise
                attempt += 1
                await self._recheck(adjustments, e)
                logger.info(
                    "Retrying stock adjustment after conflict",
                    item_id=e.item_id,
                    location_id=e.location_id,
                    attempt=attempt,
                    request_id=self.request_id,
                )
                continue

            for adj in recorded:
                logger.info(
                    "Stock adjusted",
                    item_id=adj.item_id,
                    location_id=adj.location_id,
                    delta=adj.delta,
                    reason=adj.reason.value,
                    resulting_level=adj.resulting_level,
                    related_order_id=adj.related_order_id,
                    request_id=self.request_id,
                )
            return recorded

    async def _recheck(
        self, adjustments: Sequence[StockAdjustment], conflict: StockConflictError
    ) -> None:
        """Re-read current levels; raise if the batch is no longer feasible."""
        for adj in adjustments:
            if adj.correction or adj.delta > 0:
                continue
            level = await self.store.get_level(adj.item_id, adj.location_id)
            available = level.quantity if level else 0
            if available + adj.delta < 0:
                raise InsufficientStockError(
                    item_id=adj.item_id,
                    location_id=adj.location_id,
                    requested=-adj.delta,
                    available=available,
                    limiting_components=(adj.item_id,),
                ) from conflict

    async def transfer(
        self,
        item_id: str,
        from_location_id: str,
        to_location_id: str,
        quantity: int,
        note: str | None = None,
    ) -> tuple[StockAdjustment, StockAdjustment]:
        """Move stock between locations in one batch.

        Returns:
            The outgoing and incoming adjustments.
        """
        _require_positive(quantity)
        if from_location_id == to_location_id:
            raise ValidationError(
                "Transfer source and destination must differ",
                details={"location_id": from_location_id},
            )
        out_adj, in_adj = await self.adjust_many(
            [
                AdjustmentRequest(
                    item_id=item_id,
                    location_id=from_location_id,
                    delta=-quantity,
                    reason=AdjustmentReason.TRANSFER_OUT,
                    note=note or f"Transfer to {to_location_id}",
                ),
                AdjustmentRequest(
                    item_id=item_id,
                    location_id=to_location_id,
                    delta=quantity,
                    reason=AdjustmentReason.TRANSFER_IN,
                    note=note or f"Transfer from {from_location_id}",
                ),
            ]
        )
        return out_adj, in_adj

    async def record_return(
        self,
        item_id: str,
        location_id: str,
        quantity: int,
        related_order_id: str | None = None,
        note: str | None = None,
    ) -> StockAdjustment:
        """Put returned units back on the shelf."""
        return await self.adjust(
            item_id,
            location_id,
            _require_positive(quantity),
            AdjustmentReason.RETURN,
            related_order_id=related_order_id,
            note=note,
        )

    async def exchange(
        self,
        returned_item_id: str,
        replacement_item_id: str,
        location_id: str,
        quantity: int = 1,
        related_order_id: str | None = None,
        note: str | None = None,
    ) -> tuple[StockAdjustment, StockAdjustment]:
        """Take back one item and hand out another, atomically.

        Returns:
            The incoming (returned) and outgoing (replacement) adjustments.
        """
        _require_positive(quantity)
        in_adj, out_adj = await self.adjust_many(
            [
                AdjustmentRequest(
                    item_id=returned_item_id,
                    location_id=location_id,
                    delta=quantity,
                    reason=AdjustmentReason.EXCHANGE_IN,
                    related_order_id=related_order_id,
                    note=note,
                ),
                AdjustmentRequest(
                    item_id=replacement_item_id,
                    location_id=location_id,
                    delta=-quantity,
                    reason=AdjustmentReason.EXCHANGE_OUT,
                    related_order_id=related_order_id,
                    note=note,
                ),
            ]
        )
        return in_adj, out_adj

    async def receive(
        self, item_id: str, location_id: str, quantity: int, note: str | None = None
    ) -> StockAdjustment:
        """Book incoming stock from a supplier."""
        return await self.adjust(
            item_id,
            location_id,
            _require_positive(quantity),
            AdjustmentReason.RECEIVING,
            note=note,
        )

    async def correct(
        self, item_id: str, location_id: str, delta: int, note: str | None = None
    ) -> StockAdjustment:
        """Manual audit correction; may drive the level negative."""
        return await self.adjust(
            item_id,
            location_id,
            delta,
            AdjustmentReason.CORRECTION,
            correction=True,
            note=note,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def level(self, item_id: str, location_id: str) -> int:
        stock = await self.store.get_level(item_id, location_id)
        return stock.quantity if stock else 0

    async def history(
        self,
        item_id: str | None = None,
        location_id: str | None = None,
        related_order_id: str | None = None,
    ) -> list[StockAdjustment]:
        return await self.store.list_adjustments(
            item_id=item_id,
            location_id=location_id,
            related_order_id=related_order_id,
        )

    async def replay(self, item_id: str, location_id: str) -> int:
        """Rebuild a level from its ledger rows."""
        rows = await self.store.list_adjustments(item_id=item_id, location_id=location_id)
        return sum(r.delta for r in rows)

    async def audit(self, item_id: str, location_id: str) -> StockAudit:
        rows = await self.store.list_adjustments(item_id=item_id, location_id=location_id)
        audit = StockAudit(
            item_id=item_id,
            location_id=location_id,
            materialized=await self.level(item_id, location_id),
            ledger_sum=sum(r.delta for r in rows),
            adjustment_count=len(rows),
        )
        if not audit.consistent:
            logger.warning(
                "Stock level drifted from ledger",
                item_id=item_id,
                location_id=location_id,
                materialized=audit.materialized,
                ledger_sum=audit.ledger_sum,
                request_id=self.request_id,
            )
        return audit

    async def applied_line_ids(self, order_id: str) -> set[str]:
        """Order lines that already have a stock adjustment recorded."""
        rows = await self.store.list_adjustments(related_order_id=order_id)
        return {r.related_line_id for r in rows if r.related_line_id is not None}
