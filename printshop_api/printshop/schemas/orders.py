from __future__ import annotations

from datetime import date, datetime
from enum import IntEnum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .inventory import DeductionResult, MaterialComponent


class OrderStatus(IntEnum):
    """Shared status enumeration for every intake channel."""
    ACCEPTED = 1
    IN_PROGRESS = 2
    READY = 3
    PRINTING = 4
    COMPLETED = 5
    DELIVERED = 6
    CANCELLED = 9


STATUS_LABELS = {
    OrderStatus.ACCEPTED: "Accepted",
    OrderStatus.IN_PROGRESS: "In progress",
    OrderStatus.READY: "Ready",
    OrderStatus.PRINTING: "Printing",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def status_label(status: Any) -> str:
    """Human label for a status code; unknown codes are echoed back."""
    try:
        return STATUS_LABELS[OrderStatus(int(status))]
    except (TypeError, ValueError):
        return str(status)


class MaterialRequirement(BaseModel):
    """Per-unit material need used for reservations."""
    material_id: int
    quantity: float = Field(..., description="Quantity per unit of the item")


class PricingRequest(BaseModel):
    """Inputs for the external pricing resolver."""
    format: str
    price_type: str
    density: Optional[float] = None


class LineItemCreate(BaseModel):
    """Line item payload. `params` is passed through untouched."""
    type: str
    params: Union[dict[str, Any], str] = Field(default_factory=dict)
    price: Optional[float] = None
    quantity: float = 1
    printer_id: Optional[int] = None
    sides: int = 1
    sheets: int = 0
    waste: int = 0
    clicks: int = 0
    material_requirements: Optional[List[MaterialRequirement]] = None
    components: Optional[List[MaterialComponent]] = None
    pricing: Optional[PricingRequest] = None


class CustomerFields(BaseModel):
    """Customer and ownership fields of a new order; everything optional."""
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    prepayment_amount: Optional[float] = None
    user_id: Optional[int] = None
    source: str = "manual"
    created_on: Optional[date] = Field(None, description="Backdate the order to noon UTC of this day")


class OrderCreate(CustomerFields):
    """Order with its items, for the transactional creation paths."""
    items: List[LineItemCreate] = Field(default_factory=list)


class OrderRead(BaseModel):
    """Read model for a direct order row."""
    id: int
    number: Optional[str] = None
    status: int
    source: str
    created_at: datetime
    updated_at: datetime
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    prepayment_amount: Optional[float] = None
    prepayment_status: Optional[str] = None
    payment_method: Optional[str] = None
    user_id: Optional[int] = None

    class Config:
        from_attributes = True


class LineItemRead(BaseModel):
    """Line item with its parameter bag decoded."""
    id: int
    order_id: int
    type: str
    params: Any = None
    price: float = 0
    quantity: float = 1
    printer_id: Optional[int] = None
    sides: int = 1
    sheets: int = 0
    waste: int = 0
    clicks: int = 0


class NormalizedOrder(BaseModel):
    """One order reshaped into the common structure, whatever its channel."""
    uid: str = Field(..., description="Identity across populations, e.g. order:5 or chat:5")
    id: int
    source: str
    number: str
    status: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    prepayment_amount: Optional[float] = None
    prepayment_status: Optional[str] = None
    payment_method: Optional[str] = None
    user_id: Optional[int] = None
    items: List[LineItemRead] = Field(default_factory=list)
    total_amount: float = 0


class OrderSearchFilters(BaseModel):
    """Optional predicates for order search."""
    query: Optional[str] = None
    status: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    has_prepayment: Optional[bool] = None
    payment_method: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)


class OrdersStats(BaseModel):
    """Aggregate figures over a user's visible orders."""
    total_orders: int = 0
    new_orders: int = 0
    in_progress_orders: int = 0
    ready_orders: int = 0
    printing_orders: int = 0
    completed_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: float = 0
    average_order_value: float = 0
    orders_with_prepayment: int = 0
    total_prepayment: float = 0


class OrderStatusUpdate(BaseModel):
    status: OrderStatus = Field(..., description="Target status; any known status is reachable from any other")


class BulkStatusUpdate(BaseModel):
    order_ids: List[int]
    status: OrderStatus


class BulkDelete(BaseModel):
    order_ids: List[int]


class BulkStatusResult(BaseModel):
    updated_count: int
    new_status: int


class BulkDeleteResult(BaseModel):
    deleted_count: int


class OrderWithDeduction(BaseModel):
    """Result of creating an order with automatic material deduction."""
    order: OrderRead
    deduction: DeductionResult


ExportFormat = Literal["csv", "json"]
