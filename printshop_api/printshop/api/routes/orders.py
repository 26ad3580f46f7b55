from __future__ import annotations

import io
from datetime import date
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from printshop.core.deps import get_order_service, get_owner_id
from printshop.schemas.common import MessageResponse
from printshop.schemas.orders import (
    BulkDelete,
    BulkDeleteResult,
    BulkStatusResult,
    BulkStatusUpdate,
    CustomerFields,
    LineItemCreate,
    LineItemRead,
    NormalizedOrder,
    OrderCreate,
    OrderRead,
    OrderSearchFilters,
    OrdersStats,
    OrderStatusUpdate,
    OrderWithDeduction,
)
from printshop.services.channels import DirectRef
from printshop.services.orders import OrderLifecycleService

router = APIRouter(prefix="/orders", tags=["Orders"])

EXPORT_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


def _with_owner(payload, owner_id: Optional[int]):
    if payload.user_id is None and owner_id is not None:
        return payload.model_copy(update={"user_id": owner_id})
    return payload


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[NormalizedOrder],
    summary="List orders",
    description="All orders visible to the caller across intake channels, normalized.",
)
async def list_orders(
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> List[NormalizedOrder]:
    return await svc.aggregator.list_orders(owner_id)


# PUBLIC_INTERFACE
@router.get(
    "/search",
    response_model=List[NormalizedOrder],
    summary="Search orders",
)
async def search_orders(
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
    query: Optional[str] = Query(None, description="Matches number, customer name, phone or email"),
    status_code: Optional[int] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    customer_name: Optional[str] = Query(None),
    customer_phone: Optional[str] = Query(None),
    customer_email: Optional[str] = Query(None),
    min_amount: Optional[float] = Query(None),
    max_amount: Optional[float] = Query(None),
    has_prepayment: Optional[bool] = Query(None),
    payment_method: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0),
) -> List[NormalizedOrder]:
    """Filter orders; min/max amount apply to the sum of price times quantity over items."""
    filters = OrderSearchFilters(
        query=query,
        status=status_code,
        date_from=date_from,
        date_to=date_to,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=customer_email,
        min_amount=min_amount,
        max_amount=max_amount,
        has_prepayment=has_prepayment,
        payment_method=payment_method,
        limit=limit,
        offset=offset,
    )
    return await svc.search_orders(owner_id, filters)


# PUBLIC_INTERFACE
@router.get("/stats", response_model=OrdersStats, summary="Order statistics")
async def get_orders_stats(
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
) -> OrdersStats:
    return await svc.get_orders_stats(owner_id, date_from, date_to)


# PUBLIC_INTERFACE
@router.get(
    "/export",
    summary="Export orders",
    description="Export the caller's orders as CSV or JSON.",
)
async def export_orders(
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
    export_format: str = Query("csv", alias="format", description="csv or json"),
) -> StreamingResponse:
    body = await svc.export_orders(owner_id, export_format)
    fmt = export_format.lower()
    headers = {"Content-Disposition": f'attachment; filename="orders.{fmt}"'}
    return StreamingResponse(io.StringIO(body), media_type=EXPORT_MEDIA_TYPES[fmt], headers=headers)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an empty order",
)
async def create_order(
    payload: CustomerFields,
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> OrderRead:
    order = await svc.create_order(_with_owner(payload, owner_id))
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.post(
    "/with-reservation",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an order and reserve its materials",
)
async def create_order_with_reservation(
    payload: OrderCreate,
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> OrderRead:
    order = await svc.create_order_with_reservation(_with_owner(payload, owner_id))
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.post(
    "/with-auto-deduction",
    response_model=OrderWithDeduction,
    status_code=status.HTTP_201_CREATED,
    summary="Create an order and deduct its materials from stock",
)
async def create_order_with_auto_deduction(
    payload: OrderCreate,
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> OrderWithDeduction:
    return await svc.create_order_with_auto_deduction(_with_owner(payload, owner_id))


# PUBLIC_INTERFACE
@router.post("/bulk/status", response_model=BulkStatusResult, summary="Bulk status update")
async def bulk_update_order_status(
    payload: BulkStatusUpdate,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> BulkStatusResult:
    return await svc.bulk_update_order_status(payload.order_ids, int(payload.status))


# PUBLIC_INTERFACE
@router.post("/bulk/delete", response_model=BulkDeleteResult, summary="Bulk delete")
async def bulk_delete_orders(
    payload: BulkDelete,
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> BulkDeleteResult:
    return await svc.bulk_delete_orders(payload.order_ids, owner_id)


# PUBLIC_INTERFACE
@router.get("/{order_id}", response_model=NormalizedOrder, summary="Get an order")
async def get_order(
    order_id: int,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> NormalizedOrder:
    order = await svc.aggregator.get_order(DirectRef(order_id))
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


# PUBLIC_INTERFACE
@router.post(
    "/{order_id}/items",
    response_model=LineItemRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add an item to an order",
)
async def add_order_item(
    order_id: int,
    payload: LineItemCreate,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> LineItemRead:
    return await svc.add_order_item(order_id, payload)


# PUBLIC_INTERFACE
@router.put("/{order_id}/status", response_model=NormalizedOrder, summary="Change order status")
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> NormalizedOrder:
    """Chat orders are matched before direct orders when ids collide."""
    return await svc.update_order_status(order_id, int(payload.status))


# PUBLIC_INTERFACE
@router.post(
    "/{order_id}/duplicate",
    response_model=NormalizedOrder,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate an order",
)
async def duplicate_order(
    order_id: int,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> NormalizedOrder:
    return await svc.duplicate_order(order_id)


# PUBLIC_INTERFACE
@router.get(
    "/{order_id}/material-returns",
    response_model=Dict[int, int],
    summary="Preview stock returned on delete",
)
async def preview_material_returns(
    order_id: int,
    svc: OrderLifecycleService = Depends(get_order_service),
) -> Dict[int, int]:
    return await svc.compute_material_returns(order_id)


# PUBLIC_INTERFACE
@router.delete("/{order_id}", response_model=MessageResponse, summary="Delete an order")
async def delete_order(
    order_id: int,
    owner_id: Optional[int] = Depends(get_owner_id),
    svc: OrderLifecycleService = Depends(get_order_service),
) -> MessageResponse:
    """Deletes the order and returns the materials its items consumed to stock."""
    await svc.delete_order(order_id, owner_id)
    return MessageResponse(message="Order deleted")
