"""Order API endpoints.

Provides endpoints for placed orders:
- GET /orders/{id} - order with its price-frozen lines
- GET /orders/{id}/reconciliation - which lines have their stock recorded
- POST /orders/{id}/resume - retry stock reconciliation for pending lines
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from shopcore.api.errors import raise_error
from shopcore.api.schemas import (
    BundleComponentSchema,
    CheckoutOutcomeEnum,
    CheckoutResponse,
    ErrorResponse,
    FailedLineSchema,
    ItemKindEnum,
    OrderLineSchema,
    OrderResponse,
    PriceSchema,
    ReconciliationResponse,
)
from shopcore.application.checkout_service import (
    CheckoutOrchestrator,
    CheckoutResult,
    OrderCreated,
    OrderCreatedWithStockIssues,
    get_checkout_orchestrator,
)
from shopcore.domain.entities import Order
from shopcore.domain.exceptions import OrderNotFoundError

router = APIRouter(prefix="/orders", tags=["Orders"])


# ============================================================================
# Dependencies
# ============================================================================


def get_orchestrator(request: Request) -> CheckoutOrchestrator:
    """Get checkout orchestrator with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_checkout_orchestrator(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def order_to_response(order: Order) -> OrderResponse:
    """Convert Order to response schema."""
    return OrderResponse(
        id=str(order.id),
        customer_id=order.customer_id,
        location_id=order.location_id,
        payment_id=order.payment_id,
        status=order.status.value,
        lines=[
            OrderLineSchema(
                line_id=line.line_id,
                kind=ItemKindEnum(line.kind.value),
                item_id=line.item_id,
                name=line.name,
                unit_price=PriceSchema.from_money(line.unit_price),
                quantity=line.quantity,
                tax_rate=line.tax_rate,
                shipping_cost=PriceSchema.from_money(line.shipping_cost),
                line_total=PriceSchema.from_money(line.line_total),
                components=[
                    BundleComponentSchema(
                        component_item_id=c.component_item_id,
                        required_quantity=c.required_quantity,
                        unit_cost=c.unit_cost,
                    )
                    for c in line.components
                ],
            )
            for line in order.lines
        ],
        subtotal=PriceSchema.from_money(order.subtotal),
        discount=PriceSchema.from_money(order.discount_amount),
        discount_label=order.discount_label,
        tax=PriceSchema.from_money(order.tax_amount),
        shipping=PriceSchema.from_money(order.shipping_amount),
        total=PriceSchema.from_money(order.total),
        created_at=order.created_at,
    )


def checkout_result_to_response(result: CheckoutResult) -> CheckoutResponse:
    """Convert a checkout outcome to a response, raising for rejections."""
    if isinstance(result, OrderCreated):
        return CheckoutResponse(
            outcome=CheckoutOutcomeEnum.ORDER_CREATED,
            order_id=result.order_id,
            order=order_to_response(result.order) if result.order else None,
        )
    if isinstance(result, OrderCreatedWithStockIssues):
        return CheckoutResponse(
            outcome=CheckoutOutcomeEnum.ORDER_CREATED_WITH_STOCK_ISSUES,
            order_id=result.order_id,
            order=order_to_response(result.order) if result.order else None,
            failed_lines=[
                FailedLineSchema(
                    line_id=f.line_id,
                    item_id=f.item_id,
                    error_code=f.error_code,
                    reason=f.reason,
                )
                for f in result.failed_lines
            ],
        )
    raise_error(result.error_code, result.reason, result.details, default_code="CHECKOUT_REJECTED")


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get order",
)
async def get_order(
    order_id: str,
    orchestrator: Annotated[CheckoutOrchestrator, Depends(get_orchestrator)],
) -> OrderResponse:
    order = await orchestrator.get_order(order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "ORDER_NOT_FOUND",
                "message": f"Order not found: {order_id}",
            },
        )
    return order_to_response(order)


@router.get(
    "/{order_id}/reconciliation",
    response_model=ReconciliationResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get stock reconciliation state",
)
async def get_reconciliation(
    order_id: str,
    orchestrator: Annotated[CheckoutOrchestrator, Depends(get_orchestrator)],
) -> ReconciliationResponse:
    try:
        reconciliation = await orchestrator.reconciliation_status(order_id)
    except OrderNotFoundError as e:
        raise_error(e.error_code, e.message, e.details)
    return ReconciliationResponse(
        order_id=reconciliation.order_id,
        status=reconciliation.status.value,
        reconciled_line_ids=list(reconciliation.reconciled_line_ids),
        pending_line_ids=list(reconciliation.pending_line_ids),
    )


@router.post(
    "/{order_id}/resume",
    response_model=CheckoutResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Resume stock reconciliation",
    description="Decrements stock for order lines without a ledger entry. "
    "Lines already recorded are skipped, so the call is safe to repeat.",
)
async def resume_reconciliation(
    order_id: str,
    orchestrator: Annotated[CheckoutOrchestrator, Depends(get_orchestrator)],
) -> CheckoutResponse:
    return checkout_result_to_response(await orchestrator.resume(order_id))
