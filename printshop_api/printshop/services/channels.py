"""
Intake channels and cross-channel order identity.

An order is addressed either directly (a row of the orders table owned by or
visible to the user) or through a pool assignment naming its source channel.
Each variant knows the population it lives in, which is what identity and
deduplication are based on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union

from printshop.schemas.orders import OrderStatus

WEBSITE = "website"
TELEGRAM = "telegram"
MANUAL = "manual"

# population keys used in NormalizedOrder.uid
ORDERS_POPULATION = "order"
CHAT_POPULATION = "chat"

NUMBER_PREFIXES = {WEBSITE: "site", TELEGRAM: "tg"}

CHAT_STATUS_TO_SHARED = {
    "pending": OrderStatus.ACCEPTED,
    "in_progress": OrderStatus.IN_PROGRESS,
    "ready_for_approval": OrderStatus.READY,
    "printing": OrderStatus.PRINTING,
    "completed": OrderStatus.COMPLETED,
    "delivered": OrderStatus.DELIVERED,
    "cancelled": OrderStatus.CANCELLED,
}
SHARED_TO_CHAT_STATUS = {code: word for word, code in CHAT_STATUS_TO_SHARED.items()}


@dataclass(frozen=True)
class DirectRef:
    """Order addressed through the orders table."""
    id: int

    @property
    def uid(self) -> str:
        return f"{ORDERS_POPULATION}:{self.id}"


@dataclass(frozen=True)
class PoolRef:
    """Order reached through a pool assignment; `source` names its channel."""
    source: str
    id: int

    @property
    def uid(self) -> str:
        if self.source == TELEGRAM:
            return f"{CHAT_POPULATION}:{self.id}"
        if self.source == WEBSITE:
            return f"{ORDERS_POPULATION}:{self.id}"
        return f"{self.source}:{self.id}"


OrderRef = Union[DirectRef, PoolRef]


# PUBLIC_INTERFACE
def pooled_number(source: str, order_id: int) -> str:
    """Synthetic display number `<prefix>-ord-<id>`; unknown sources get `ord-<id>`."""
    prefix = NUMBER_PREFIXES.get(source)
    return f"{prefix}-ord-{order_id}" if prefix else f"ord-{order_id}"


# PUBLIC_INTERFACE
def normalize_chat_status(value: object) -> int:
    """Map the chat bot's status vocabulary (or an already numeric code) to the shared enum."""
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    return int(CHAT_STATUS_TO_SHARED.get(text, OrderStatus.ACCEPTED))


# PUBLIC_INTERFACE
def chat_status_for(code: int) -> str:
    """Native chat status to store for a shared status code."""
    word = SHARED_TO_CHAT_STATUS.get(code)
    return word if word is not None else str(code)


# PUBLIC_INTERFACE
def chat_statuses_matching(code: int) -> List[str]:
    """Every stored chat status value that normalizes to `code`."""
    values = [word for word, shared in CHAT_STATUS_TO_SHARED.items() if shared == code]
    values.append(str(code))
    return values
