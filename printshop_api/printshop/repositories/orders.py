from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy import and_, case, delete, exists, func, or_, select

from printshop.db.models.orders import (
    ChatOrder,
    LineItem,
    Order,
    OrderPage,
    OrderStatusEvent,
    PoolAssignment,
)
from printshop.schemas.orders import OrderSearchFilters
from .base import BaseRepository


def _day_start(value) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class OrderRepository(BaseRepository):
    """Repository for direct orders and their line items."""

    async def get_order(self, order_id: int) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        return await self.one_or_none(stmt)

    async def list_visible_to(self, owner_id: Optional[int]) -> List[Order]:
        stmt = (
            select(Order)
            .where(or_(Order.user_id == owner_id, Order.user_id.is_(None)))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return await self.scalars(stmt)

    async def list_items(self, order_id: int) -> List[LineItem]:
        stmt = select(LineItem).where(LineItem.order_id == order_id).order_by(LineItem.id)
        return await self.scalars(stmt)

    async def list_items_for_orders(self, order_ids: Sequence[int]) -> List[LineItem]:
        if not order_ids:
            return []
        stmt = (
            select(LineItem)
            .where(LineItem.order_id.in_(list(order_ids)))
            .order_by(LineItem.order_id, LineItem.id)
        )
        return await self.scalars(stmt)

    async def delete_order(self, order_id: int) -> int:
        """Delete the order row; items and reservations go with it via FK cascade."""
        res = await self.execute(delete(Order).where(Order.id == order_id))
        return res.rowcount or 0

    async def list_recently_updated(self, status: int, since: datetime) -> List[Order]:
        stmt = (
            select(Order)
            .where(Order.status == status, Order.updated_at > since)
            .order_by(Order.id)
        )
        return await self.scalars(stmt)

    @staticmethod
    def total_amount_expr():
        """Correlated subquery: sum of price * quantity over the order's items, 0 when none."""
        return (
            select(func.coalesce(func.sum(LineItem.price * LineItem.quantity), 0.0))
            .where(LineItem.order_id == Order.id)
            .correlate(Order)
            .scalar_subquery()
        )

    def _visibility_conditions(
        self,
        owner_id: Optional[int],
        date_from=None,
        date_to=None,
    ) -> list:
        conditions = [or_(Order.user_id == owner_id, Order.user_id.is_(None))]
        if date_from is not None:
            conditions.append(Order.created_at >= _day_start(date_from))
        if date_to is not None:
            conditions.append(Order.created_at < _day_start(date_to) + timedelta(days=1))
        return conditions

    async def search(
        self, owner_id: Optional[int], filters: OrderSearchFilters
    ) -> List[tuple[Order, float]]:
        conditions = self._visibility_conditions(owner_id, filters.date_from, filters.date_to)

        if filters.query:
            like = f"%{filters.query}%"
            item_match = exists().where(
                LineItem.order_id == Order.id,
                or_(LineItem.type.ilike(like), LineItem.params.ilike(like)),
            )
            conditions.append(
                or_(
                    Order.number.ilike(like),
                    Order.customer_name.ilike(like),
                    Order.customer_phone.ilike(like),
                    Order.customer_email.ilike(like),
                    item_match,
                )
            )
        if filters.status is not None:
            conditions.append(Order.status == filters.status)
        if filters.customer_name:
            conditions.append(Order.customer_name.ilike(f"%{filters.customer_name}%"))
        if filters.customer_phone:
            conditions.append(Order.customer_phone.ilike(f"%{filters.customer_phone}%"))
        if filters.customer_email:
            conditions.append(Order.customer_email.ilike(f"%{filters.customer_email}%"))
        if filters.has_prepayment is not None:
            if filters.has_prepayment:
                conditions.append(Order.prepayment_amount > 0)
            else:
                conditions.append(
                    or_(Order.prepayment_amount.is_(None), Order.prepayment_amount == 0)
                )
        if filters.payment_method:
            conditions.append(Order.payment_method == filters.payment_method)

        total = self.total_amount_expr()
        if filters.min_amount is not None:
            conditions.append(total >= filters.min_amount)
        if filters.max_amount is not None:
            conditions.append(total <= filters.max_amount)

        stmt = (
            select(Order, total.label("total_amount"))
            .where(and_(*conditions))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        if filters.offset:
            stmt = stmt.offset(filters.offset)
        res = await self.execute(stmt)
        return [(row[0], float(row[1] or 0)) for row in res.all()]

    async def stats(self, owner_id: Optional[int], date_from=None, date_to=None) -> dict:
        conditions = self._visibility_conditions(owner_id, date_from, date_to)
        totals = (
            select(
                Order.id.label("order_id"),
                Order.status.label("status"),
                Order.prepayment_amount.label("prepayment_amount"),
                self.total_amount_expr().label("total_amount"),
            )
            .where(and_(*conditions))
            .subquery()
        )

        def _count_status(code: int):
            return func.count(case((totals.c.status == code, 1)))

        stmt = select(
            func.count(totals.c.order_id),
            _count_status(1),
            _count_status(2),
            _count_status(3),
            _count_status(4),
            _count_status(5),
            _count_status(6),
            _count_status(9),
            func.coalesce(func.sum(totals.c.total_amount), 0.0),
            func.coalesce(func.avg(totals.c.total_amount), 0.0),
            func.count(case((totals.c.prepayment_amount > 0, 1))),
            func.coalesce(func.sum(totals.c.prepayment_amount), 0.0),
        )
        row = (await self.execute(stmt)).one()
        keys = (
            "total_orders",
            "new_orders",
            "in_progress_orders",
            "ready_orders",
            "printing_orders",
            "completed_orders",
            "delivered_orders",
            "cancelled_orders",
            "total_revenue",
            "average_order_value",
            "orders_with_prepayment",
            "total_prepayment",
        )
        return dict(zip(keys, row))


class ChatOrderRepository(BaseRepository):
    """Repository for chat-channel (photo bot) orders."""

    async def get_chat_order(self, order_id: int) -> Optional[ChatOrder]:
        stmt = select(ChatOrder).where(ChatOrder.id == order_id)
        return await self.one_or_none(stmt)

    async def list_recently_updated(
        self, native_statuses: Sequence[str], since: datetime
    ) -> List[ChatOrder]:
        stmt = (
            select(ChatOrder)
            .where(ChatOrder.status.in_(list(native_statuses)), ChatOrder.updated_at > since)
            .order_by(ChatOrder.id)
        )
        return await self.scalars(stmt)


class PoolRepository(BaseRepository):
    """Repository for order pages and pooled order assignments."""

    async def list_assignments_for_user(self, user_id: Optional[int]) -> List[PoolAssignment]:
        pages = select(OrderPage.id).where(OrderPage.user_id == user_id)
        stmt = (
            select(PoolAssignment)
            .where(PoolAssignment.page_id.in_(pages))
            .order_by(PoolAssignment.assigned_at.desc(), PoolAssignment.id.desc())
        )
        return await self.scalars(stmt)


class StatusEventRepository(BaseRepository):
    """Repository for order status history."""

    async def latest_for(self, order_type: str, order_id: int) -> Optional[OrderStatusEvent]:
        stmt = (
            select(OrderStatusEvent)
            .where(
                OrderStatusEvent.order_type == order_type,
                OrderStatusEvent.order_id == order_id,
            )
            .order_by(OrderStatusEvent.id.desc())
            .limit(1)
        )
        return await self.one_or_none(stmt)
