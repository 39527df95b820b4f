"""Catalog API endpoints.

Maintains the products and bundles the carts sell:
- POST /catalog/products - create or replace a product
- GET /catalog/products/{id}
- POST /catalog/bundles - define a bundle from existing products
- GET /catalog/bundles/{id}
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from shopcore.api.errors import raise_error
from shopcore.api.inventory import get_service
from shopcore.api.schemas import (
    BundleComponentSchema,
    BundleCreateRequest,
    BundleResponse,
    ErrorResponse,
    ProductCreateRequest,
    ProductResponse,
)
from shopcore.application.inventory_service import InventoryService
from shopcore.domain.bundles import Bundle, BundleAvailability, BundleComponent
from shopcore.domain.entities import CatalogProduct
from shopcore.domain.exceptions import DomainError

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def product_to_response(product: CatalogProduct) -> ProductResponse:
    return ProductResponse(
        item_id=product.item_id,
        name=product.name,
        price=product.price,
        category=product.category,
        shipping_cost=product.shipping_cost,
    )


def bundle_to_response(bundle: Bundle) -> BundleResponse:
    availability = BundleAvailability(bundle)
    return BundleResponse(
        bundle_id=bundle.bundle_id,
        name=bundle.name,
        price=bundle.price,
        components=[
            BundleComponentSchema(
                component_item_id=c.component_item_id,
                required_quantity=c.required_quantity,
                unit_cost=c.unit_cost,
            )
            for c in bundle.components
        ],
        percent_off=bundle.percent_off,
        category=bundle.category,
        aggregate_component_cost=availability.aggregate_component_cost,
        savings=availability.savings(),
    )


@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create or replace a product",
)
async def create_product(
    request: ProductCreateRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> ProductResponse:
    try:
        product = CatalogProduct(
            item_id=request.item_id,
            name=request.name,
            price=request.price,
            category=request.category,
            shipping_cost=request.shipping_cost,
        )
    except DomainError as e:
        raise_error(e.error_code, e.message, e.details)
    return product_to_response(await service.register_product(product))


@router.get(
    "/products/{item_id}",
    response_model=ProductResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get product",
)
async def get_product(
    item_id: str,
    service: Annotated[InventoryService, Depends(get_service)],
) -> ProductResponse:
    product = await service.get_product(item_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "ITEM_NOT_FOUND",
                "message": f"Product not found: {item_id}",
            },
        )
    return product_to_response(product)


@router.post(
    "/bundles",
    response_model=BundleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Define a bundle",
)
async def create_bundle(
    request: BundleCreateRequest,
    service: Annotated[InventoryService, Depends(get_service)],
) -> BundleResponse:
    try:
        bundle = Bundle(
            bundle_id=request.bundle_id,
            name=request.name,
            price=request.price,
            components=tuple(
                BundleComponent(
                    component_item_id=c.component_item_id,
                    required_quantity=c.required_quantity,
                    unit_cost=c.unit_cost,
                )
                for c in request.components
            ),
            percent_off=request.percent_off,
            category=request.category,
        )
    except DomainError as e:
        raise_error(e.error_code, e.message, e.details)

    result = await service.register_bundle(bundle)
    if not result.success:
        raise_error(result.error_code, result.error)
    return bundle_to_response(bundle)


@router.get(
    "/bundles/{bundle_id}",
    response_model=BundleResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get bundle",
)
async def get_bundle(
    bundle_id: str,
    service: Annotated[InventoryService, Depends(get_service)],
) -> BundleResponse:
    bundle = await service.get_bundle(bundle_id)
    if bundle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "ITEM_NOT_FOUND",
                "message": f"Bundle not found: {bundle_id}",
            },
        )
    return bundle_to_response(bundle)
