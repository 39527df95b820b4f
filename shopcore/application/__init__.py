"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from shopcore.application.cart_service import CartService, get_cart_service
from shopcore.application.checkout_service import (
    CheckoutOrchestrator,
    CheckoutResult,
    OrderCreated,
    OrderCreatedWithStockIssues,
    Rejected,
    get_checkout_orchestrator,
)
from shopcore.application.inventory_service import InventoryService, get_inventory_service
from shopcore.application.stock_ledger import AdjustmentRequest, StockLedger

__all__ = [
    "AdjustmentRequest",
    "CartService",
    "get_cart_service",
    "CheckoutOrchestrator",
    "CheckoutResult",
    "OrderCreated",
    "OrderCreatedWithStockIssues",
    "Rejected",
    "get_checkout_orchestrator",
    "InventoryService",
    "get_inventory_service",
    "StockLedger",
]
