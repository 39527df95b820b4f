"""Checkout API endpoints.

- POST /checkouts - commit a cart with a captured payment

A checkout that places an order answers 201 even when some lines could
not be decremented; those lines are listed in ``failed_lines``. A
rejected checkout persisted nothing and answers with an error.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from shopcore.api.orders import checkout_result_to_response, get_orchestrator
from shopcore.api.schemas import CheckoutRequest, CheckoutResponse, ErrorResponse
from shopcore.application.cart_service import CartService, get_cart_service
from shopcore.application.checkout_service import CheckoutOrchestrator
from shopcore.domain.value_objects import PaymentConfirmation

router = APIRouter(prefix="/checkouts", tags=["Checkouts"])


def get_cart_svc(request: Request) -> CartService:
    """Get cart service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_cart_service(request_id=request_id)


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Commit a cart",
    description="Re-validates stock, places the order and decrements stock per line. "
    "Retrying with the same payment_id resumes the existing order instead of "
    "placing a second one.",
)
async def create_checkout(
    request: CheckoutRequest,
    carts: Annotated[CartService, Depends(get_cart_svc)],
    orchestrator: Annotated[CheckoutOrchestrator, Depends(get_orchestrator)],
) -> CheckoutResponse:
    """Commit a cart into an order.

    Args:
        request: Checkout request with the captured payment.
        carts: Cart service holding the session cart.
        orchestrator: Checkout orchestrator.

    Returns:
        Checkout outcome with the placed order.

    Raises:
        HTTPException: If the cart is unknown or the checkout is rejected.
    """
    cart = await carts.get_cart(request.cart_id)
    if cart is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "CART_NOT_FOUND",
                "message": f"Cart not found: {request.cart_id}",
            },
        )

    result = await orchestrator.commit(
        cart,
        customer_id=request.customer_id,
        location_id=request.location_id,
        payment=PaymentConfirmation(
            payment_id=request.payment_id,
            captured=request.payment_captured,
            method=request.payment_method,
        ),
    )
    return checkout_result_to_response(result)
