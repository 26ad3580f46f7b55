from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationTarget:
    """Plain snapshot of the order a notification is about."""
    order_id: int
    order_type: str
    number: Optional[str]
    customer_name: Optional[str]
    customer_phone: Optional[str]
    customer_email: Optional[str]
    status: int
    created_at: datetime
    updated_at: Optional[datetime]


class NotificationTransport(Protocol):
    """Delivery channel for rendered notifications. Raising marks the attempt as failed."""

    async def send(self, message: str, *, target: NotificationTarget, rule_id: int) -> None:
        ...


class LoggingTransport:
    """Default transport: writes the notification to the application log."""

    async def send(self, message: str, *, target: NotificationTarget, rule_id: int) -> None:
        logger.info(
            "Notification for %s order %s (rule %s): %s",
            target.order_type,
            target.order_id,
            rule_id,
            message,
        )


class RecordingTransport:
    """Keeps every delivered message in memory; handy for previews and tests."""

    def __init__(self) -> None:
        self.sent: List[tuple[int, str, int, str]] = []

    async def send(self, message: str, *, target: NotificationTarget, rule_id: int) -> None:
        self.sent.append((target.order_id, target.order_type, rule_id, message))
