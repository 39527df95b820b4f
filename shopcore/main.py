"""shopcore API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shopcore.api.carts import router as carts_router
from shopcore.api.catalog import router as catalog_router
from shopcore.api.checkouts import router as checkouts_router
from shopcore.api.health import router as health_router
from shopcore.api.inventory import router as inventory_router
from shopcore.api.middleware import setup_middleware
from shopcore.api.orders import router as orders_router
from shopcore.infrastructure.config import settings
from shopcore.infrastructure.database import dispose_engine, init_models
from shopcore.infrastructure.logging_config import configure_logging
from shopcore.infrastructure.rate_client import close_rate_lookups

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging(settings.log_level, debug=settings.debug)
    logger.info(
        "Starting shopcore API",
        version=settings.api_version,
        debug=settings.debug,
        storage_backend=settings.storage_backend,
    )

    if settings.storage_backend == "sql":
        await init_models()
        logger.info("Database tables ready")

    yield

    # Shutdown
    logger.info("Shutting down shopcore API")
    await close_rate_lookups()
    if settings.storage_backend == "sql":
        await dispose_engine()


app = FastAPI(
    title="shopcore API",
    description="Inventory-consistent checkout and bundle pricing",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(catalog_router)
app.include_router(carts_router)
app.include_router(checkouts_router)
app.include_router(orders_router)
app.include_router(inventory_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": [],
            "request_id": request_id,
        },
    )
