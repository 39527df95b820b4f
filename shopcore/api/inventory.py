"""Inventory API endpoints.

Provides endpoints for stock reads and staff adjustments:
- GET /inventory/bundles/{id}/availability - sellable bundles per location
- GET /inventory/stock/{item_id}/{location_id} - current level
- GET /inventory/stock/{item_id}/{location_id}/audit - level vs ledger
- GET/POST /inventory/adjustments - ledger rows / staff adjustment
- POST /inventory/transfers, /returns, /exchanges
- POST /inventory/price-quote - selling price estimate
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from shopcore.api.errors import raise_error
from shopcore.api.schemas import (
    BundleAvailabilityResponse,
    ComponentCapacitySchema,
    ErrorResponse,
    LocationAvailabilitySchema,
    PriceQuoteRequest,
    PriceQuoteResponse,
    StockAdjustmentCreateRequest,
    StockAdjustmentListResponse,
    StockAdjustmentSchema,
    StockAuditResponse,
    StockExchangeRequest,
    StockLevelResponse,
    StockReturnRequest,
    StockTransferRequest,
)
from shopcore.application.inventory_service import (
    AdjustmentResult,
    InventoryService,
    get_inventory_service,
)
from shopcore.domain.exceptions import DomainError
from shopcore.domain.pricing import PricedKind
from shopcore.domain.stock import AdjustmentReason, StockAdjustment

router = APIRouter(prefix="/inventory", tags=["Inventory"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service(request: Request) -> InventoryService:
    """Get inventory service with request ID."""
    request_id = getattr(request.state, "request_id", None)
    return get_inventory_service(request_id=request_id)


# ============================================================================
# Converters
# ============================================================================


def adjustment_to_schema(adjustment: StockAdjustment) -> StockAdjustmentSchema:
    return StockAdjustmentSchema(
        id=str(adjustment.id),
        item_id=adjustment.item_id,
        location_id=adjustment.location_id,
        delta=adjustment.delta,
        reason=adjustment.reason.value,
        related_order_id=adjustment.related_order_id,
        related_line_id=adjustment.related_line_id,
        correction=adjustment.correction,
        note=adjustment.note,
        resulting_level=adjustment.resulting_level,
        created_at=adjustment.created_at,
    )


def _adjustments_response(result: AdjustmentResult) -> StockAdjustmentListResponse:
    if not result.success:
        raise_error(result.error_code, result.error, result.details, default_code="ADJUSTMENT_FAILED")
    items = [adjustment_to_schema(a) for a in result.adjustments]
    return StockAdjustmentListResponse(items=items, total=len(items))


# ============================================================================
# Availability
# ============================================================================


@router.get(
    "/bundles/{bundle_id}/availability",
    response_model=BundleAvailabilityResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Bundle availability",
    description="How many bundles each location can sell now and which components "
    "limit it. A point-in-time read, not a reservation.",
)
async def bundle_availability(
    bundle_id: str,
    service: Annotated[InventoryService, Depends(get_service)],
    location_id: Annotated[list[str] | None, Query()] = None,
) -> BundleAvailabilityResponse:
    result = await service.bundle_availability(bundle_id, location_ids=location_id)
    if not result.success:
        raise_error(result.error_code, result.error)
    return BundleAvailabilityResponse(
        bundle_id=bundle_id,
        price=result.price,
        aggregate_component_cost=result.aggregate_component_cost,
        savings=result.savings,
        locations=[
            LocationAvailabilitySchema(
                location_id=report.location_id,
                sellable_quantity=report.sellable_quantity,
                limiting_components=list(report.limiting_components),
                components=[
                    ComponentCapacitySchema(
                        component_item_id=c.component_item_id,
                        required_quantity=c.required_quantity,
                        stock=c.stock,
                        capacity=c.capacity,
                    )
                    for c in report.components
                ],
            )
            for report in result.reports
        ],
    )


@router.get(
    "/stock/{item_id}/{location_id}",
    response_model=StockLevelResponse,
    summary="Stock level",
)
async def stock_level(
    item_id: str,
    location_id: str,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockLevelResponse:
    quantity = await service.level(item_id, location_id)
    return StockLevelResponse(item_id=item_id, location_id=location_id, quantity=quantity)


@router.get(
    "/stock/{item_id}/{location_id}/audit",
    response_model=StockAuditResponse,
    summary="Audit a stock level against its ledger",
)
async def stock_audit(
    item_id: str,
    location_id: str,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockAuditResponse:
    audit = await service.audit(item_id, location_id)
    return StockAuditResponse(
        item_id=audit.item_id,
        location_id=audit.location_id,
        materialized=audit.materialized,
        ledger_sum=audit.ledger_sum,
        adjustment_count=audit.adjustment_count,
        consistent=audit.consistent,
    )


# ============================================================================
# Ledger
# ============================================================================


@router.get(
    "/adjustments",
    response_model=StockAdjustmentListResponse,
    summary="List ledger rows",
)
async def list_adjustments(
    service: Annotated[InventoryService, Depends(get_service)],
    item_id: str | None = None,
    location_id: str | None = None,
    related_order_id: str | None = None,
) -> StockAdjustmentListResponse:
    history = await service.history(
        item_id=item_id, location_id=location_id, related_order_id=related_order_id
    )
    items = [adjustment_to_schema(a) for a in history]
    return StockAdjustmentListResponse(items=items, total=len(items))


@router.post(
    "/adjustments",
    response_model=StockAdjustmentListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Record a staff adjustment",
    description="Receiving, walk-in returns and audit corrections. Corrections may "
    "leave the level negative; other reasons may not.",
)
async def create_adjustment(
    request: StockAdjustmentCreateRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockAdjustmentListResponse:
    result = await service.adjust(
        request.item_id,
        request.location_id,
        request.delta,
        AdjustmentReason(request.reason.value),
        note=request.note,
    )
    return _adjustments_response(result)


@router.post(
    "/transfers",
    response_model=StockAdjustmentListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Transfer stock between locations",
)
async def transfer_stock(
    request: StockTransferRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockAdjustmentListResponse:
    result = await service.transfer(
        request.item_id,
        request.from_location_id,
        request.to_location_id,
        request.quantity,
        note=request.note,
    )
    return _adjustments_response(result)


@router.post(
    "/returns",
    response_model=StockAdjustmentListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Return units to stock",
)
async def return_stock(
    request: StockReturnRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockAdjustmentListResponse:
    result = await service.record_return(
        request.item_id,
        request.location_id,
        request.quantity,
        related_order_id=request.related_order_id,
        note=request.note,
    )
    return _adjustments_response(result)


@router.post(
    "/exchanges",
    response_model=StockAdjustmentListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Exchange a returned item for a replacement",
)
async def exchange_stock(
    request: StockExchangeRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> StockAdjustmentListResponse:
    result = await service.exchange(
        request.returned_item_id,
        request.replacement_item_id,
        request.location_id,
        request.quantity,
        related_order_id=request.related_order_id,
        note=request.note,
    )
    return _adjustments_response(result)


# ============================================================================
# Pricing
# ============================================================================


@router.post(
    "/price-quote",
    response_model=PriceQuoteResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Estimate a selling price",
)
async def price_quote(
    request: PriceQuoteRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> PriceQuoteResponse:
    try:
        price = service.quote(
            PricedKind(request.kind.value),
            request.raw,
            tax_percent=request.tax_percent,
            shipping=request.shipping,
            labour=request.labour,
            markup=request.markup,
            fee=request.fee,
        )
    except DomainError as e:
        raise_error(e.error_code, e.message, e.details)
    return PriceQuoteResponse(kind=request.kind, price=price)
