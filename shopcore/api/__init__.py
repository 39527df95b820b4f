"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from shopcore.api.carts import router as carts_router
from shopcore.api.catalog import router as catalog_router
from shopcore.api.checkouts import router as checkouts_router
from shopcore.api.health import router as health_router
from shopcore.api.inventory import router as inventory_router
from shopcore.api.orders import router as orders_router

__all__ = [
    "carts_router",
    "catalog_router",
    "checkouts_router",
    "health_router",
    "inventory_router",
    "orders_router",
]
