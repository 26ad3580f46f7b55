from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from printshop.db.models.notifications import NotificationLog, NotificationRule
from printshop.schemas.notifications import NotificationRuleCreate
from .base import BaseRepository


class NotificationRuleRepository(BaseRepository):
    """Repository for notification rules."""

    async def list_enabled(self) -> List[NotificationRule]:
        stmt = select(NotificationRule).where(NotificationRule.enabled.is_(True)).order_by(NotificationRule.id)
        return await self.scalars(stmt)

    async def list_rules(self) -> List[NotificationRule]:
        return await self.scalars(select(NotificationRule).order_by(NotificationRule.id))

    async def create_rule(self, payload: NotificationRuleCreate) -> NotificationRule:
        row = NotificationRule(
            name=payload.name,
            order_type=payload.order_type,
            status_from=payload.status_from,
            status_to=payload.status_to,
            delay_hours=payload.delay_hours,
            message_template=payload.message_template,
            enabled=payload.enabled,
        )
        await self.add(row)
        await self.flush()
        return row


class NotificationLogRepository(BaseRepository):
    """Insert-only repository for notification logs."""

    async def find(self, order_id: int, order_type: str, rule_id: int) -> Optional[NotificationLog]:
        stmt = (
            select(NotificationLog)
            .where(
                NotificationLog.order_id == order_id,
                NotificationLog.order_type == order_type,
                NotificationLog.rule_id == rule_id,
            )
            .limit(1)
        )
        return await self.one_or_none(stmt)

    async def list_logs(self, limit: int = 100) -> List[NotificationLog]:
        stmt = (
            select(NotificationLog)
            .order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc())
            .limit(limit)
        )
        return await self.scalars(stmt)
