"""Tests for the stock ledger."""

import pytest
import pytest_asyncio

from shopcore.application.stock_ledger import AdjustmentRequest, StockLedger
from shopcore.domain.exceptions import (
    DuplicateAdjustmentError,
    InsufficientStockError,
    InvalidQuantityError,
    StockConflictError,
    ValidationError,
)
from shopcore.domain.stock import AdjustmentReason
from shopcore.infrastructure.memory_store import InMemoryInventoryStore


class ConflictingStore(InMemoryInventoryStore):
    """Store that loses the race a set number of times before applying."""

    def __init__(self, steal: int = 0) -> None:
        super().__init__()
        self.conflicts = 0
        self.steal = steal
        self.calls = 0

    async def apply_adjustments(self, adjustments):
        self.calls += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            adj = adjustments[0]
            if self.steal:
                # Another writer took units between our read and write.
                key = (adj.item_id, adj.location_id)
                self._levels[key] = self._levels.get(key, 0) - self.steal
            raise StockConflictError(adj.item_id, adj.location_id)
        return await super().apply_adjustments(adjustments)


@pytest_asyncio.fixture
async def seeded_store() -> InMemoryInventoryStore:
    store = InMemoryInventoryStore()
    await store.seed_stock("A", "store-1", 2)
    return store


class TestAdjust:
    """Tests for single adjustments."""

    @pytest.mark.asyncio
    async def test_decrement_beyond_level_rejected(self, seeded_store):
        """delta -3 on level 2 is refused and the level stays 2."""
        ledger = StockLedger(seeded_store)

        with pytest.raises(InsufficientStockError) as exc_info:
            await ledger.adjust("A", "store-1", -3, AdjustmentReason.SALE)

        assert exc_info.value.available == 2
        assert await ledger.level("A", "store-1") == 2
        assert len(await ledger.history(item_id="A")) == 1

    @pytest.mark.asyncio
    async def test_decrement_to_zero(self, seeded_store):
        ledger = StockLedger(seeded_store)

        adj = await ledger.adjust("A", "store-1", -2, AdjustmentReason.SALE)

        assert adj.resulting_level == 0
        assert await ledger.level("A", "store-1") == 0

    @pytest.mark.asyncio
    async def test_correction_may_go_negative(self, seeded_store):
        ledger = StockLedger(seeded_store)

        adj = await ledger.correct("A", "store-1", -5, note="Shrinkage found at count")

        assert adj.correction
        assert adj.reason is AdjustmentReason.CORRECTION
        assert await ledger.level("A", "store-1") == -3

    @pytest.mark.asyncio
    async def test_zero_delta_rejected(self, seeded_store):
        with pytest.raises(InvalidQuantityError):
            await StockLedger(seeded_store).adjust("A", "store-1", 0, AdjustmentReason.RECEIVING)

    @pytest.mark.asyncio
    async def test_duplicate_order_line_rejected(self, seeded_store):
        ledger = StockLedger(seeded_store)
        await ledger.adjust(
            "A", "store-1", -1, AdjustmentReason.SALE, related_order_id="o1", related_line_id="l1"
        )

        with pytest.raises(DuplicateAdjustmentError):
            await ledger.adjust(
                "A", "store-1", -1, AdjustmentReason.SALE, related_order_id="o1", related_line_id="l1"
            )

        assert await ledger.level("A", "store-1") == 1
        assert await ledger.applied_line_ids("o1") == {"l1"}

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, seeded_store):
        with pytest.raises(ValidationError):
            await StockLedger(seeded_store).adjust_many([])


class TestAdjustMany:
    """Tests for all-or-nothing batches."""

    @pytest.mark.asyncio
    async def test_batch_rolls_back_when_one_row_fails(self, seeded_store):
        await seeded_store.seed_stock("B", "store-1", 1)
        ledger = StockLedger(seeded_store)

        with pytest.raises(InsufficientStockError):
            await ledger.adjust_many(
                [
                    AdjustmentRequest("A", "store-1", -1, AdjustmentReason.BUNDLE_SALE),
                    AdjustmentRequest("B", "store-1", -2, AdjustmentReason.BUNDLE_SALE),
                ]
            )

        assert await ledger.level("A", "store-1") == 2
        assert await ledger.level("B", "store-1") == 1

    @pytest.mark.asyncio
    async def test_rows_for_same_item_accumulate(self, seeded_store):
        ledger = StockLedger(seeded_store)

        with pytest.raises(InsufficientStockError):
            await ledger.adjust_many(
                [
                    AdjustmentRequest("A", "store-1", -2, AdjustmentReason.SALE),
                    AdjustmentRequest("A", "store-1", -1, AdjustmentReason.SALE),
                ]
            )


class TestConflictRetry:
    """Tests for retrying after a lost race."""

    @pytest.mark.asyncio
    async def test_retries_once_then_succeeds(self):
        store = ConflictingStore()
        await store.seed_stock("A", "s", 5)
        store.conflicts = 1
        store.calls = 0
        ledger = StockLedger(store, conflict_retries=1)

        adj = await ledger.adjust("A", "s", -2, AdjustmentReason.SALE)

        assert store.calls == 2
        assert adj.resulting_level == 3

    @pytest.mark.asyncio
    async def test_second_conflict_is_raised(self):
        store = ConflictingStore()
        await store.seed_stock("A", "s", 5)
        store.conflicts = 2
        ledger = StockLedger(store, conflict_retries=1)

        with pytest.raises(StockConflictError):
            await ledger.adjust("A", "s", -2, AdjustmentReason.SALE)

    @pytest.mark.asyncio
    async def test_recheck_reports_insufficient_stock(self):
        """When the winner took the stock, the retry becomes InsufficientStock."""
        store = ConflictingStore(steal=4)
        await store.seed_stock("A", "s", 5)
        store.conflicts = 1
        ledger = StockLedger(store)

        with pytest.raises(InsufficientStockError) as exc_info:
            await ledger.adjust("A", "s", -2, AdjustmentReason.SALE)

        assert exc_info.value.available == 1


class TestStockMovements:
    """Tests for transfers, returns, exchanges and receiving."""

    @pytest.mark.asyncio
    async def test_transfer(self, seeded_store):
        ledger = StockLedger(seeded_store)

        out_adj, in_adj = await ledger.transfer("A", "store-1", "store-2", 2)

        assert out_adj.reason is AdjustmentReason.TRANSFER_OUT
        assert in_adj.reason is AdjustmentReason.TRANSFER_IN
        assert await ledger.level("A", "store-1") == 0
        assert await ledger.level("A", "store-2") == 2

    @pytest.mark.asyncio
    async def test_transfer_more_than_stock(self, seeded_store):
        ledger = StockLedger(seeded_store)

        with pytest.raises(InsufficientStockError):
            await ledger.transfer("A", "store-1", "store-2", 3)

        assert await ledger.level("A", "store-2") == 0

    @pytest.mark.asyncio
    async def test_transfer_to_same_location(self, seeded_store):
        with pytest.raises(ValidationError):
            await StockLedger(seeded_store).transfer("A", "store-1", "store-1", 1)

    @pytest.mark.asyncio
    async def test_exchange(self, seeded_store):
        await seeded_store.seed_stock("B", "store-1", 1)
        ledger = StockLedger(seeded_store)

        in_adj, out_adj = await ledger.exchange("A", "B", "store-1", related_order_id="o1")

        assert in_adj.reason is AdjustmentReason.EXCHANGE_IN
        assert out_adj.reason is AdjustmentReason.EXCHANGE_OUT
        assert await ledger.level("A", "store-1") == 3
        assert await ledger.level("B", "store-1") == 0

    @pytest.mark.asyncio
    async def test_exchange_without_replacement_stock(self, seeded_store):
        ledger = StockLedger(seeded_store)

        with pytest.raises(InsufficientStockError):
            await ledger.exchange("A", "B", "store-1")

        assert await ledger.level("A", "store-1") == 2

    @pytest.mark.asyncio
    async def test_return_and_receive(self, seeded_store):
        ledger = StockLedger(seeded_store)

        await ledger.record_return("A", "store-1", 1, related_order_id="o1")
        await ledger.receive("A", "store-1", 10, note="PO-7")

        assert await ledger.level("A", "store-1") == 13

    @pytest.mark.asyncio
    async def test_return_quantity_must_be_positive(self, seeded_store):
        with pytest.raises(InvalidQuantityError):
            await StockLedger(seeded_store).record_return("A", "store-1", -1)


class TestAudit:
    """Tests for ledger replay and drift detection."""

    @pytest.mark.asyncio
    async def test_replay_matches_level(self, seeded_store):
        ledger = StockLedger(seeded_store)
        await ledger.receive("A", "store-1", 5)
        await ledger.adjust("A", "store-1", -4, AdjustmentReason.SALE)
        await ledger.correct("A", "store-1", -1)

        audit = await ledger.audit("A", "store-1")

        assert await ledger.replay("A", "store-1") == 2
        assert audit.consistent
        assert audit.adjustment_count == 4

    @pytest.mark.asyncio
    async def test_drift_detected(self, seeded_store):
        seeded_store._levels[("A", "store-1")] = 7
        audit = await StockLedger(seeded_store).audit("A", "store-1")

        assert not audit.consistent
        assert audit.drift == 5
