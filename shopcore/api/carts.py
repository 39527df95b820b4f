"""Cart API endpoints.

Provides endpoints for building a cart before checkout:
- POST /carts - open a cart for a location
- POST /carts/{id}/items - add a product or bundle
- PATCH /carts/{id}/items/{line_id} - change a line's quantity
- POST /carts/{id}/discount - apply the single cart discount
- PUT /carts/{id}/shipping - quote shipping for a destination state
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from shopcore.api.errors import raise_error
from shopcore.api.schemas import (
    BundleComponentSchema,
    CartCreateRequest,
    CartItemAddRequest,
    CartItemUpdateRequest,
    CartResponse,
    CartTotalsSchema,
    DiscountRequest,
    DiscountSchema,
    ErrorResponse,
    ItemKindEnum,
    LineItemSchema,
    PriceSchema,
    ShippingDestinationRequest,
)
from shopcore.application.cart_service import CartResult, CartService, get_cart_service
from shopcore.domain.discounts import DiscountSource
from shopcore.domain.entities import Cart, CartTotals, LineItem

router = APIRouter(prefix="/carts", tags=["Carts"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> CartService:
    """Get cart service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_cart_service(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def line_to_schema(line: LineItem) -> LineItemSchema:
    return LineItemSchema(
        id=str(line.id),
        kind=ItemKindEnum(line.kind.value),
        item_id=line.item_id,
        name=line.name,
        unit_price=PriceSchema.from_money(line.unit_price),
        quantity=line.quantity,
        tax_rate=line.tax_rate,
        shipping_cost=PriceSchema.from_money(line.shipping_cost),
        line_total=PriceSchema.from_money(line.line_total),
        category=line.category,
        options=dict(line.options),
        components=[
            BundleComponentSchema(
                component_item_id=c.component_item_id,
                required_quantity=c.required_quantity,
                unit_cost=c.unit_cost,
            )
            for c in line.components
        ],
    )


def totals_to_schema(totals: CartTotals) -> CartTotalsSchema:
    return CartTotalsSchema(
        subtotal=PriceSchema.from_money(totals.subtotal),
        discount=PriceSchema.from_money(totals.discount_amount),
        tax=PriceSchema.from_money(totals.tax_amount),
        shipping=PriceSchema.from_money(totals.shipping_amount),
        total=PriceSchema.from_money(totals.total),
        item_count=totals.item_count,
        active_discount=DiscountSchema(
            source=totals.discount.source.value,
            percent_off=totals.discount.percent_off,
            label=totals.discount.describe(),
        ),
    )


def cart_to_response(cart: Cart) -> CartResponse:
    """Convert Cart aggregate to response schema."""
    return CartResponse(
        id=str(cart.id),
        location_id=cart.location_id,
        customer_id=cart.customer_id,
        shipping_state=cart.shipping_state,
        lines=[line_to_schema(line) for line in cart.lines],
        totals=totals_to_schema(cart.totals()),
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


def _unwrap(result: CartResult) -> Cart:
    if not result.success or result.cart is None:
        raise_error(result.error_code, result.error, result.details, default_code="CART_ERROR")
    return result.cart


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Open a cart",
)
async def create_cart(
    request: CartCreateRequest,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.create_cart(
        location_id=request.location_id,
        customer_id=request.customer_id,
        currency=request.currency,
    )
    return cart_to_response(_unwrap(result))


@router.get(
    "/{cart_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get cart",
)
async def get_cart(
    cart_id: str,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    cart = await service.get_cart(cart_id)
    if cart is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "CART_NOT_FOUND",
                "message": f"Cart not found: {cart_id}",
            },
        )
    return cart_to_response(cart)


@router.post(
    "/{cart_id}/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Add a product or bundle",
    description="Adds a line after checking the cart location's stock. "
    "Adding an item already in the cart increases that line's quantity.",
)
async def add_item(
    cart_id: str,
    request: CartItemAddRequest,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    """Add a product or bundle to the cart.

    Raises:
        HTTPException: 409 with the limiting components when the location
            cannot sell that many.
    """
    if request.kind is ItemKindEnum.BUNDLE:
        result = await service.add_bundle(cart_id, request.item_id, request.quantity)
    else:
        result = await service.add_product(
            cart_id, request.item_id, request.quantity, options=request.options
        )
    return cart_to_response(_unwrap(result))


@router.patch(
    "/{cart_id}/items/{line_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Change a line's quantity",
)
async def update_item(
    cart_id: str,
    line_id: str,
    request: CartItemUpdateRequest,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.update_quantity(cart_id, line_id, request.quantity)
    return cart_to_response(_unwrap(result))


@router.delete(
    "/{cart_id}/items/{line_id}",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Remove a line",
)
async def remove_item(
    cart_id: str,
    line_id: str,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.remove_item(cart_id, line_id)
    return cart_to_response(_unwrap(result))


@router.delete(
    "/{cart_id}/items",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Empty the cart",
)
async def clear_cart(
    cart_id: str,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.clear_cart(cart_id)
    return cart_to_response(_unwrap(result))


@router.post(
    "/{cart_id}/discount",
    response_model=CartResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Apply the cart discount",
    description="Only one discount source is active at a time; while one is "
    "active, discounts from other sources are ignored.",
)
async def apply_discount(
    cart_id: str,
    request: DiscountRequest,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.apply_discount(
        cart_id,
        source=DiscountSource(request.source.value),
        percent_off=request.percent_off,
        rule=request.rule,
        bundle_id=request.bundle_id,
    )
    return cart_to_response(_unwrap(result))


@router.delete(
    "/{cart_id}/discount",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Clear the cart discount",
)
async def clear_discount(
    cart_id: str,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.clear_discount(cart_id)
    return cart_to_response(_unwrap(result))


@router.put(
    "/{cart_id}/shipping",
    response_model=CartResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Set the shipping destination",
)
async def set_shipping(
    cart_id: str,
    request: ShippingDestinationRequest,
    service: Annotated[CartService, Depends(get_service)],
) -> CartResponse:
    result = await service.set_shipping_destination(cart_id, request.state_code)
    return cart_to_response(_unwrap(result))


@router.get(
    "/{cart_id}/totals",
    response_model=CartTotalsSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get cart totals",
)
async def get_totals(
    cart_id: str,
    service: Annotated[CartService, Depends(get_service)],
) -> CartTotalsSchema:
    cart = await service.get_cart(cart_id)
    if cart is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "CART_NOT_FOUND",
                "message": f"Cart not found: {cart_id}",
            },
        )
    return totals_to_schema(cart.totals())
