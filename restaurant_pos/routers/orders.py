"""
Order API endpoints.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from restaurant_pos.models import OrderStatus
from restaurant_pos.routers.deps import get_services
from restaurant_pos.schemas import (
    BillResponse,
    ErrorResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderItemAddResponse,
    OrderItemCreate,
    OrderListResponse,
    OrderResponse,
    OrderUpdate,
    VoidOrderResponse,
)
from restaurant_pos.services import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    services: ServiceRegistry = Depends(get_services),
) -> OrderCreateResponse:
    """
    Place an order and reserve ingredient stock for every line.

    Either the order, all its items and every stock decrement are stored,
    or nothing is. A short ingredient returns 409 ``insufficient_stock``.
    """
    order = await services.orders.place_order(order_data)
    return OrderCreateResponse(
        message="Order placed successfully",
        id=order.id,
        order_number=order.order_number,
    )


@router.get("", response_model=OrderListResponse, summary="List Orders")
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    outlet_id: Optional[int] = Query(None, gt=0),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    services: ServiceRegistry = Depends(get_services),
) -> OrderListResponse:
    """Retrieve paginated list of orders, newest first."""
    total, orders = await services.orders.list_orders(
        status=status_filter, outlet_id=outlet_id, skip=skip, limit=limit
    )
    return OrderListResponse(
        total=total,
        orders=[OrderResponse.model_validate(order) for order in orders],
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> OrderResponse:
    """Get one order with its items and exclusions."""
    order = await services.orders.get_order(order_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    changes: OrderUpdate,
    services: ServiceRegistry = Depends(get_services),
) -> OrderResponse:
    order = await services.orders.update_order(order_id, changes)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/add",
    response_model=OrderItemAddResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Item To Order",
)
async def add_order_item(
    order_id: int,
    item: OrderItemCreate,
    services: ServiceRegistry = Depends(get_services),
) -> OrderItemAddResponse:
    """Add one line to an existing order with the same stock guarantee as placement."""
    order_item = await services.orders.add_item(order_id, item)
    return OrderItemAddResponse(
        message="Item added to order",
        order_id=order_id,
        order_item_id=order_item.id,
    )


@router.delete("/{order_id}", response_model=VoidOrderResponse, summary="Void Order")
async def void_order(
    order_id: int,
    restock: Optional[bool] = Query(None, description="Return consumed stock; defaults to RESTOCK_ON_VOID"),
    services: ServiceRegistry = Depends(get_services),
) -> VoidOrderResponse:
    """Void an order. Rows are kept; status becomes ``void``."""
    order, restocked = await services.orders.void_order(order_id, restock=restock)
    return VoidOrderResponse(
        message=f"Order {order.order_number} voided",
        order_id=order.id,
        restocked=restocked,
    )


@router.get("/{order_id}/bills", response_model=List[BillResponse])
async def list_order_bills(
    order_id: int,
    services: ServiceRegistry = Depends(get_services),
) -> List[BillResponse]:
    bills = await services.billing.list_order_bills(order_id)
    return [BillResponse.model_validate(bill) for bill in bills]
