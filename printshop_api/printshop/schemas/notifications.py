from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

RuleScope = Literal["website", "telegram", "all"]


class NotificationRuleCreate(BaseModel):
    """Payload for a new notification rule."""
    name: str
    order_type: RuleScope = Field(..., description="Channel scope of the rule")
    status_from: Optional[int] = Field(None, description="Only fire for transitions out of this status")
    status_to: int = Field(..., description="Status the order must currently have")
    delay_hours: Optional[int] = Field(None, ge=0, description="Minimum order age before firing")
    message_template: str = Field(..., description="Template with {orderId}, {orderNumber}, ... placeholders")
    enabled: bool = True


class NotificationRuleRead(NotificationRuleCreate):
    id: int

    class Config:
        from_attributes = True


class NotificationLogRead(BaseModel):
    """Read model for a notification log row."""
    id: int
    order_id: int
    order_type: str
    rule_id: int
    message: str
    sent_at: datetime
    status: str
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class NotificationPassSummary(BaseModel):
    """Counters for one notification pass."""
    rules_processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
