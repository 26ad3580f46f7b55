from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class MaterialRead(BaseModel):
    """Read model for a stock material."""
    id: int = Field(..., description="Material ID")
    name: str = Field(..., description="Material name")
    unit: Optional[str] = Field(None, description="Unit of measure")
    quantity: float = Field(..., description="On-hand quantity")
    min_quantity: Optional[float] = Field(None, description="Low-stock threshold")

    class Config:
        from_attributes = True


class MaterialMoveRead(BaseModel):
    """Read model for a ledger audit row."""
    id: int
    material_id: int
    delta: float = Field(..., description="Signed quantity change")
    reason: Optional[str] = None
    order_id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReservationRequest(BaseModel):
    """One hold to place on a material for a pending order."""
    material_id: int = Field(..., description="Material to hold")
    quantity: float = Field(..., description="Quantity to hold")
    order_id: Optional[int] = Field(None, description="Owning order")
    reason: Optional[str] = Field(None, description="Human-readable reason")
    expires_in_hours: float = Field(24, description="Time to live in hours")


class ReservationRead(BaseModel):
    """Read model for a material reservation."""
    id: int
    material_id: int
    order_id: Optional[int] = None
    quantity: float
    reason: Optional[str] = None
    status: str
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class MaterialComponent(BaseModel):
    """Explicit per-unit material usage supplied with an item."""
    material_id: int
    qty_per_item: float


class DeductionItem(BaseModel):
    """Item as seen by auto-deduction: type + parsed params + quantity."""
    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    quantity: float = 1
    components: Optional[List[MaterialComponent]] = None


class MaterialDeduction(BaseModel):
    """A deduction that was applied to the ledger."""
    material_id: int
    quantity: float
    item_type: str


class DeductionResult(BaseModel):
    """Outcome of auto-deduction; callers must roll back when success is False."""
    success: bool
    errors: List[str] = Field(default_factory=list)
    deductions: List[MaterialDeduction] = Field(default_factory=list)


class MaterialAdjust(BaseModel):
    """Manual stock correction."""
    delta: float = Field(..., description="Signed quantity change")
    reason: str = Field("manual adjustment", description="Reason recorded on the ledger move")
