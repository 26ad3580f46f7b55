from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.db.base import ensure_utc, utcnow
from printshop.db.models.notifications import NotificationLog, NotificationRule
from printshop.repositories.notifications import NotificationLogRepository, NotificationRuleRepository
from printshop.repositories.orders import (
    ChatOrderRepository,
    OrderRepository,
    StatusEventRepository,
)
from printshop.schemas.notifications import NotificationPassSummary, NotificationRuleCreate
from printshop.schemas.orders import status_label
from printshop.services.aggregator import direct_number
from printshop.services.base import BaseService
from printshop.services.channels import (
    TELEGRAM,
    WEBSITE,
    chat_statuses_matching,
    normalize_chat_status,
    pooled_number,
)
from printshop.services.transport import LoggingTransport, NotificationTarget, NotificationTransport

logger = logging.getLogger(__name__)

SCOPE_ALL = "all"
SENT = "sent"
FAILED = "failed"
DEFAULT_CUSTOMER_NAME = "Customer"


@dataclass(frozen=True)
class _RuleSnapshot:
    id: int
    name: str
    order_type: str
    status_from: Optional[int]
    status_to: int
    delay_hours: Optional[int]
    message_template: str


def render_message(template: str, target: NotificationTarget) -> str:
    """Substitute the supported placeholders; unknown placeholders stay as written."""
    replacements = {
        "{orderId}": str(target.order_id),
        "{orderNumber}": target.number or f"#{target.order_id}",
        "{customerName}": target.customer_name or DEFAULT_CUSTOMER_NAME,
        "{status}": status_label(target.status),
        "{createdAt}": target.created_at.isoformat() if target.created_at else "",
        "{updatedAt}": target.updated_at.isoformat() if target.updated_at else "",
    }
    message = template
    for placeholder, value in replacements.items():
        message = message.replace(placeholder, value)
    return message


class NotificationRuleEngine(BaseService):
    """
    Periodic evaluation of notification rules against recently changed orders.

    Delivery is at most once per (order, channel, rule): a log row, sent or
    failed, blocks every later attempt. The engine commits per delivery so a
    failure only loses the order it happened on.
    """

    def __init__(
        self,
        session: AsyncSession,
        transport: Optional[NotificationTransport] = None,
        *,
        recent_window: timedelta = timedelta(minutes=60),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(session)
        self.transport = transport or LoggingTransport()
        self.recent_window = recent_window
        self.clock = clock
        self.rules = NotificationRuleRepository(session)
        self.logs = NotificationLogRepository(session)
        self.orders = OrderRepository(session)
        self.chat_orders = ChatOrderRepository(session)
        self.status_events = StatusEventRepository(session)

    # PUBLIC_INTERFACE
    async def check_order_notifications(self, now: Optional[datetime] = None) -> NotificationPassSummary:
        """Run one pass over every enabled rule and report what happened."""
        now = now or self.clock()
        summary = NotificationPassSummary()
        rules = [
            _RuleSnapshot(
                id=r.id,
                name=r.name,
                order_type=r.order_type,
                status_from=r.status_from,
                status_to=r.status_to,
                delay_hours=r.delay_hours,
                message_template=r.message_template,
            )
            for r in await self.rules.list_enabled()
        ]

        for rule in rules:
            try:
                await self._process_rule(rule, now, summary)
            except Exception:
                logger.exception("Processing notification rule %r failed", rule.name)
                await self.session.rollback()
            summary.rules_processed += 1

        logger.info(
            "Notification pass done: %d rule(s), %d sent, %d failed, %d skipped",
            summary.rules_processed,
            summary.sent,
            summary.failed,
            summary.skipped,
        )
        return summary

    async def _process_rule(
        self, rule: _RuleSnapshot, now: datetime, summary: NotificationPassSummary
    ) -> None:
        for target in await self._candidates(rule, now - self.recent_window):
            try:
                if not await self._is_due(rule, target, now):
                    summary.skipped += 1
                    continue
                outcome = await self._deliver(rule, target, now)
                if outcome == SENT:
                    summary.sent += 1
                elif outcome == FAILED:
                    summary.failed += 1
                else:
                    summary.skipped += 1
            except Exception:
                logger.exception(
                    "Notification for %s order %s (rule %s) failed",
                    target.order_type,
                    target.order_id,
                    rule.id,
                )
                await self.session.rollback()
                summary.failed += 1

    async def _candidates(self, rule: _RuleSnapshot, since: datetime) -> List[NotificationTarget]:
        targets: List[NotificationTarget] = []
        if rule.order_type in (WEBSITE, SCOPE_ALL):
            for order in await self.orders.list_recently_updated(rule.status_to, since):
                targets.append(
                    NotificationTarget(
                        order_id=order.id,
                        order_type=WEBSITE,
                        number=direct_number(order),
                        customer_name=order.customer_name,
                        customer_phone=order.customer_phone,
                        customer_email=order.customer_email,
                        status=order.status,
                        created_at=ensure_utc(order.created_at),
                        updated_at=ensure_utc(order.updated_at),
                    )
                )
        if rule.order_type in (TELEGRAM, SCOPE_ALL):
            chats = await self.chat_orders.list_recently_updated(
                chat_statuses_matching(rule.status_to), since
            )
            for chat in chats:
                targets.append(
                    NotificationTarget(
                        order_id=chat.id,
                        order_type=TELEGRAM,
                        number=pooled_number(TELEGRAM, chat.id),
                        customer_name=chat.first_name,
                        customer_phone=chat.chat_id,
                        customer_email=None,
                        status=normalize_chat_status(chat.status),
                        created_at=ensure_utc(chat.created_at),
                        updated_at=ensure_utc(chat.updated_at),
                    )
                )
        return targets

    async def _is_due(self, rule: _RuleSnapshot, target: NotificationTarget, now: datetime) -> bool:
        existing = await self.logs.find(target.order_id, target.order_type, rule.id)
        if existing is not None:
            return False

        if rule.status_from is not None:
            last = await self.status_events.latest_for(target.order_type, target.order_id)
            if last is None or last.from_status != rule.status_from or last.to_status != rule.status_to:
                return False

        if rule.delay_hours:
            if now - target.created_at < timedelta(hours=rule.delay_hours):
                return False
        return True

    async def _deliver(
        self, rule: _RuleSnapshot, target: NotificationTarget, now: datetime
    ) -> Optional[str]:
        """
        Claim the (order, channel, rule) slot, then send.

        The `sent` row is flushed before the transport is called so a
        concurrent pass hits the unique key instead of sending twice. Returns
        SENT, FAILED, or None when another pass already owns the slot.
        """
        message = render_message(rule.message_template, target)
        if not await self._claim(target, rule, message, now, SENT):
            return None
        try:
            await self.transport.send(message, target=target, rule_id=rule.id)
            await self.session.commit()
            return SENT
        except Exception as exc:
            logger.exception(
                "Sending notification for %s order %s failed", target.order_type, target.order_id
            )
            await self.session.rollback()
            if not await self._claim(
                target, rule, message, now, FAILED, error=str(exc) or exc.__class__.__name__
            ):
                return None
            await self.session.commit()
            return FAILED

    async def _claim(
        self,
        target: NotificationTarget,
        rule: _RuleSnapshot,
        message: str,
        now: datetime,
        status: str,
        error: Optional[str] = None,
    ) -> bool:
        await self.logs.add(
            NotificationLog(
                order_id=target.order_id,
                order_type=target.order_type,
                rule_id=rule.id,
                message=message,
                sent_at=now,
                status=status,
                error_message=error,
            )
        )
        try:
            await self.logs.flush()
        except IntegrityError:
            await self.session.rollback()
            logger.info(
                "Notification for %s order %s (rule %s) already handled by another pass",
                target.order_type,
                target.order_id,
                rule.id,
            )
            return False
        return True

    # PUBLIC_INTERFACE
    async def create_rule(self, payload: NotificationRuleCreate) -> NotificationRule:
        async with self.transaction("create notification rule"):
            rule = await self.rules.create_rule(payload)
        logger.info("Notification rule %r created", rule.name)
        return rule

    # PUBLIC_INTERFACE
    async def list_rules(self) -> List[NotificationRule]:
        return await self.rules.list_rules()

    # PUBLIC_INTERFACE
    async def list_logs(self, limit: int = 100) -> List[NotificationLog]:
        """Most recent notification attempts first."""
        return await self.logs.list_logs(limit)
