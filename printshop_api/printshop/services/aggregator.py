from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.db.base import ensure_utc
from printshop.db.models.orders import ChatOrder, LineItem, Order, PoolAssignment
from printshop.repositories.orders import ChatOrderRepository, OrderRepository, PoolRepository
from printshop.schemas.orders import LineItemRead, NormalizedOrder, OrderStatus
from printshop.services.base import BaseService
from printshop.services.channels import (
    TELEGRAM,
    WEBSITE,
    DirectRef,
    OrderRef,
    PoolRef,
    normalize_chat_status,
    pooled_number,
)
from printshop.services.params import decode_params

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "Customer"
PHOTO_PRINT_TYPE = "Photo print"


# PUBLIC_INTERFACE
def line_item_read(item: LineItem) -> LineItemRead:
    """Decode a stored line item, degrading a malformed params bag to the sentinel."""
    return LineItemRead(
        id=item.id,
        order_id=item.order_id,
        type=item.type,
        params=decode_params(item.params, item.id),
        price=item.price or 0,
        quantity=item.quantity if item.quantity is not None else 1,
        printer_id=item.printer_id,
        sides=item.sides,
        sheets=item.sheets,
        waste=item.waste,
        clicks=item.clicks,
    )


def _total(items: Iterable[LineItemRead]) -> float:
    return float(sum((i.price or 0) * (i.quantity or 0) for i in items))


# PUBLIC_INTERFACE
def direct_number(order: Order) -> str:
    """Display number of an orders-table row: website intake is source-qualified."""
    if order.source == WEBSITE:
        return pooled_number(WEBSITE, order.id)
    return order.number or f"ORD-{order.id:04d}"


# PUBLIC_INTERFACE
def normalize_direct(order: Order, items: Sequence[LineItem]) -> NormalizedOrder:
    """Normalize a row of the orders table."""
    number = direct_number(order)
    decoded = [line_item_read(i) for i in items]
    return NormalizedOrder(
        uid=DirectRef(order.id).uid,
        id=order.id,
        source=order.source,
        number=number,
        status=order.status,
        created_at=ensure_utc(order.created_at),
        updated_at=ensure_utc(order.updated_at),
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        customer_email=order.customer_email,
        prepayment_amount=order.prepayment_amount,
        prepayment_status=order.prepayment_status,
        payment_method=order.payment_method,
        user_id=order.user_id,
        items=decoded,
        total_amount=_total(decoded),
    )


# PUBLIC_INTERFACE
def chat_virtual_item(chat: ChatOrder) -> LineItemRead:
    """The single synthesized line item of a chat order (no item rows exist for them)."""
    return LineItemRead(
        id=chat.id * 1000,
        order_id=chat.id,
        type=PHOTO_PRINT_TYPE,
        params={
            "description": f"Photo {chat.selected_size} ({chat.processing_options})",
            "size": chat.selected_size,
            "processing": chat.processing_options,
            "quantity": chat.quantity,
        },
        price=(chat.total_price or 0) / 100.0,
        quantity=chat.quantity or 1,
        printer_id=None,
        sides=1,
        sheets=1,
        waste=0,
        clicks=0,
    )


# PUBLIC_INTERFACE
def normalize_chat(chat: ChatOrder) -> NormalizedOrder:
    """Normalize a chat-channel order."""
    item = chat_virtual_item(chat)
    return NormalizedOrder(
        uid=PoolRef(TELEGRAM, chat.id).uid,
        id=chat.id,
        source=TELEGRAM,
        number=pooled_number(TELEGRAM, chat.id),
        status=normalize_chat_status(chat.status),
        created_at=ensure_utc(chat.created_at),
        updated_at=ensure_utc(chat.updated_at),
        customer_name=chat.first_name,
        customer_phone=chat.chat_id,
        customer_email=None,
        prepayment_amount=(chat.total_price or 0) / 100.0,
        prepayment_status="paid",
        payment_method=TELEGRAM,
        user_id=None,
        items=[item],
        total_amount=_total([item]),
    )


# PUBLIC_INTERFACE
def normalize_unknown_pooled(assignment: PoolAssignment) -> NormalizedOrder:
    """Placeholder for a pooled order whose channel has no backing population here."""
    ref = PoolRef(assignment.order_type, assignment.order_id)
    return NormalizedOrder(
        uid=ref.uid,
        id=assignment.order_id,
        source=assignment.order_type,
        number=pooled_number(assignment.order_type, assignment.order_id),
        status=int(OrderStatus.ACCEPTED),
        created_at=ensure_utc(assignment.assigned_at),
        updated_at=ensure_utc(assignment.assigned_at),
        customer_name=DEFAULT_CUSTOMER_NAME,
        customer_phone="",
        customer_email="",
        prepayment_amount=0,
        prepayment_status="paid",
        payment_method=assignment.order_type,
        items=[],
    )


class OrderAggregator(BaseService):
    """
    Merges direct, pooled and chat-channel orders into one normalized list.

    Output is newest first within each population; across populations direct
    orders come first, then pooled ones by assignment time. An order reachable
    twice (owned and also pooled to the same user) is kept once, first
    occurrence wins.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.orders = OrderRepository(session)
        self.chat_orders = ChatOrderRepository(session)
        self.pool = PoolRepository(session)

    # PUBLIC_INTERFACE
    async def list_orders(self, owner_id: Optional[int]) -> List[NormalizedOrder]:
        """All orders visible to `owner_id` in normalized form."""
        direct = await self.orders.list_visible_to(owner_id)
        assignments = await self.pool.list_assignments_for_user(owner_id)

        pooled_direct_ids = [a.order_id for a in assignments if a.order_type == WEBSITE]
        pooled_orders: Dict[int, Order] = {}
        for order_id in pooled_direct_ids:
            order = await self.orders.get_order(order_id)
            if order is not None:
                pooled_orders[order.id] = order

        items_by_order = await self._items_by_order(
            [o.id for o in direct] + list(pooled_orders)
        )

        merged: List[NormalizedOrder] = []
        seen: set[str] = set()

        def _push(normalized: NormalizedOrder) -> None:
            if normalized.uid in seen:
                return
            seen.add(normalized.uid)
            merged.append(normalized)

        for order in direct:
            _push(normalize_direct(order, items_by_order.get(order.id, [])))

        for assignment in assignments:
            ref = PoolRef(assignment.order_type, assignment.order_id)
            if ref.uid in seen:
                continue
            normalized = await self._normalize_pooled(ref, assignment, pooled_orders, items_by_order)
            if normalized is not None:
                _push(normalized)

        return merged

    # PUBLIC_INTERFACE
    async def get_order(self, ref: OrderRef) -> Optional[NormalizedOrder]:
        """Normalize a single order by reference; None when it does not exist."""
        if isinstance(ref, PoolRef) and ref.source == TELEGRAM:
            chat = await self.chat_orders.get_chat_order(ref.id)
            return normalize_chat(chat) if chat is not None else None
        if isinstance(ref, PoolRef) and ref.source != WEBSITE:
            return None
        order = await self.orders.get_order(ref.id)
        if order is None:
            return None
        return normalize_direct(order, await self.orders.list_items(order.id))

    async def _items_by_order(self, order_ids: Sequence[int]) -> Dict[int, List[LineItem]]:
        grouped: Dict[int, List[LineItem]] = defaultdict(list)
        for item in await self.orders.list_items_for_orders(order_ids):
            grouped[item.order_id].append(item)
        return grouped

    async def _normalize_pooled(
        self,
        ref: PoolRef,
        assignment: PoolAssignment,
        pooled_orders: Dict[int, Order],
        items_by_order: Dict[int, List[LineItem]],
    ) -> Optional[NormalizedOrder]:
        if ref.source == WEBSITE:
            order = pooled_orders.get(ref.id)
            if order is None:
                logger.warning("Pool assignment %s points at missing order %s", assignment.id, ref.id)
                return None
            return normalize_direct(order, items_by_order.get(order.id, []))
        if ref.source == TELEGRAM:
            chat = await self.chat_orders.get_chat_order(ref.id)
            if chat is None:
                logger.warning("Pool assignment %s points at missing chat order %s", assignment.id, ref.id)
                return None
            return normalize_chat(chat)
        return normalize_unknown_pooled(assignment)
