from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from printshop.db.base import Base, IntPkMixin, TimestampMixin, utcnow


class NotificationRule(IntPkMixin, TimestampMixin, Base):
    """Admin-configured rule: notify when an order of `order_type` reaches `status_to`."""
    __tablename__ = "notification_rules"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    order_type: Mapped[str] = mapped_column(Text, nullable=False)  # website/telegram/all
    status_from: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status_to: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class NotificationLog(IntPkMixin, Base):
    """Insert-only record of a notification attempt; the database allows one row per (order, channel, rule)."""
    __tablename__ = "notification_logs"
    __table_args__ = (
        UniqueConstraint("order_id", "order_type", "rule_id", name="uq_notification_logs_order_rule"),
    )

    order_id: Mapped[int] = mapped_column(Integer, nullable=False)
    order_type: Mapped[str] = mapped_column(Text, nullable=False)
    rule_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("notification_rules.id"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False)  # sent/failed/pending
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
