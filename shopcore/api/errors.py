"""Mapping of domain error codes to HTTP responses."""

from typing import Any, NoReturn

from fastapi import HTTPException, status

NOT_FOUND_CODES = {
    "CART_NOT_FOUND",
    "ITEM_NOT_FOUND",
    "ORDER_NOT_FOUND",
    "LINE_NOT_FOUND",
    "STOCK_LEVEL_NOT_FOUND",
}

CONFLICT_CODES = {
    "INSUFFICIENT_STOCK",
    "STOCK_CONFLICT",
    "DUPLICATE_ADJUSTMENT",
    "DUPLICATE_ORDER",
}


def status_for(error_code: str | None) -> int:
    """HTTP status for a domain error code."""
    if error_code in NOT_FOUND_CODES:
        return status.HTTP_404_NOT_FOUND
    if error_code in CONFLICT_CODES:
        return status.HTTP_409_CONFLICT
    if error_code == "PAYMENT_NOT_CONFIRMED":
        return status.HTTP_402_PAYMENT_REQUIRED
    if error_code == "RATE_LOOKUP_FAILED":
        return status.HTTP_502_BAD_GATEWAY
    if error_code == "ORDER_PERSIST_FAILED":
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


def raise_error(
    error_code: str | None,
    message: str | None,
    details: dict[str, Any] | None = None,
    default_code: str = "REQUEST_FAILED",
) -> NoReturn:
    """Raise the HTTPException the exception handlers render."""
    raise HTTPException(
        status_code=status_for(error_code),
        detail={
            "error_code": error_code or default_code,
            "message": message or "Request failed",
            "details": details or {},
        },
    )
