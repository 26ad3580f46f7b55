from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from printshop.db.base import Base, IntPkMixin, TimestampMixin, utcnow


class Order(IntPkMixin, TimestampMixin, Base):
    """Direct order (manual desk orders and website intake)."""
    __tablename__ = "orders"

    number: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    status: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="manual")  # manual/website
    customer_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    prepayment_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    prepayment_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)


class LineItem(IntPkMixin, Base):
    """Order line item. `params` holds serialized JSON owned by the presentation layer."""
    __tablename__ = "items"

    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False)
    params: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1)
    printer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sides: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sheets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    waste: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ChatOrder(IntPkMixin, TimestampMixin, Base):
    """Photo-print order received through the chat bot. Status uses the bot's own vocabulary."""
    __tablename__ = "chat_orders"

    chat_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    selected_size: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processing_options: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # minor units
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class OrderPage(IntPkMixin, TimestampMixin, Base):
    """A user's personal page that pooled orders get assigned to."""
    __tablename__ = "order_pages"

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PoolAssignment(IntPkMixin, Base):
    """Assignment of an order from the shared pool onto an order page."""
    __tablename__ = "pool_assignments"

    page_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("order_pages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_type: Mapped[str] = mapped_column(Text, nullable=False)  # website/telegram/...
    order_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class OrderStatusEvent(IntPkMixin, Base):
    """Status change history for orders of any channel."""
    __tablename__ = "order_status_events"

    order_type: Mapped[str] = mapped_column(Text, nullable=False)
    order_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    from_status: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    to_status: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
