"""Tests for the notification rule engine."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from printshop.db.base import utcnow
from printshop.db.models.notifications import NotificationLog
from printshop.schemas.notifications import NotificationRuleCreate
from printshop.schemas.orders import CustomerFields
from printshop.services.notifications import NotificationRuleEngine, render_message
from printshop.services.orders import OrderLifecycleService
from printshop.services.transport import NotificationTarget, RecordingTransport
from tests.fakes import (
    FailingTransport,
    SelectiveTransport,
    SlowTransport,
    add_chat_order,
    add_rule,
    order_with,
)


async def _logs(session):
    res = await session.execute(select(NotificationLog).order_by(NotificationLog.id))
    return list(res.scalars())


async def _order_at_status(session, status: int, **fields) -> int:
    service = OrderLifecycleService(session)
    order = await service.create_order(CustomerFields(customer_name="Ivan Petrov", **fields))
    await service.update_order_status(order.id, 2)
    if status != 2:
        await service.update_order_status(order.id, status)
    return order.id


class TestRenderMessage:

    def test_placeholders_and_fallbacks(self):
        created = datetime(2025, 5, 1, 9, 30, tzinfo=timezone.utc)
        target = NotificationTarget(
            order_id=17,
            order_type="telegram",
            number=None,
            customer_name=None,
            customer_phone=None,
            customer_email=None,
            status=5,
            created_at=created,
            updated_at=None,
        )

        message = render_message("{orderId}|{orderNumber}|{customerName}|{status}|{createdAt}|{updatedAt}", target)

        assert message == "17|#17|Customer|Completed|2025-05-01T09:30:00+00:00|"


class TestCheckOrderNotifications:

    async def test_transition_to_ready_notifies_exactly_once(self, session):
        rule = await add_rule(session, status_to=3)
        order_id = await _order_at_status(session, 3)
        transport = RecordingTransport()
        engine = NotificationRuleEngine(session, transport)

        first = await engine.check_order_notifications()
        second = await engine.check_order_notifications()

        logs = await _logs(session)
        assert [(l.order_id, l.order_type, l.rule_id, l.status) for l in logs] == [
            (order_id, "website", rule.id, "sent")
        ]
        assert logs[0].message == f"Order ORD-{order_id:04d} for Ivan Petrov is now Ready"
        assert first.sent == 1
        assert second.sent == 0
        assert second.skipped == 1
        assert len(transport.sent) == 1

    async def test_order_at_other_status_ignored(self, session):
        await add_rule(session, status_to=3)
        await _order_at_status(session, 2)

        summary = await NotificationRuleEngine(session).check_order_notifications()

        assert summary.sent == 0
        assert await _logs(session) == []

    async def test_disabled_rule_ignored(self, session):
        await add_rule(session, status_to=3, enabled=False)
        await _order_at_status(session, 3)

        summary = await NotificationRuleEngine(session).check_order_notifications()

        assert summary.rules_processed == 0
        assert await _logs(session) == []

    async def test_delay_holds_young_orders_until_threshold(self, session):
        await add_rule(session, status_to=3, delay_hours=24)
        fresh_id = await _order_at_status(session, 3)
        old_id = await _order_at_status(session, 3, created_on=utcnow().date() - timedelta(days=3))
        engine = NotificationRuleEngine(session, recent_window=timedelta(hours=30))

        await engine.check_order_notifications()
        assert [l.order_id for l in await _logs(session)] == [old_id]

        await engine.check_order_notifications(now=utcnow() + timedelta(hours=23))
        assert [l.order_id for l in await _logs(session)] == [old_id]

        await engine.check_order_notifications(now=utcnow() + timedelta(hours=24, minutes=1))
        assert [l.order_id for l in await _logs(session)] == [old_id, fresh_id]

    async def test_status_from_matches_last_transition(self, session):
        await add_rule(session, status_from=2, status_to=3)
        via_work = await _order_at_status(session, 3)
        service = OrderLifecycleService(session)
        skipped = await service.create_order(CustomerFields())
        skipped_id = skipped.id
        await service.update_order_status(skipped_id, 3)

        await NotificationRuleEngine(session).check_order_notifications()

        assert [l.order_id for l in await _logs(session)] == [via_work]

    async def test_transport_failure_logged_and_not_retried(self, session):
        await add_rule(session, status_to=3)
        order_id = await _order_at_status(session, 3)
        transport = FailingTransport("smtp timeout")
        engine = NotificationRuleEngine(session, transport)

        summary = await engine.check_order_notifications()
        await engine.check_order_notifications()

        logs = await _logs(session)
        assert [(l.order_id, l.status, l.error_message) for l in logs] == [
            (order_id, "failed", "smtp timeout")
        ]
        assert summary.failed == 1
        assert transport.calls == 1

    async def test_failure_on_one_order_does_not_block_others(self, session):
        await add_rule(session, status_to=3)
        broken = await _order_at_status(session, 3)
        healthy = await _order_at_status(session, 3)
        transport = SelectiveTransport({broken})

        summary = await NotificationRuleEngine(session, transport).check_order_notifications()

        statuses = {l.order_id: l.status for l in await _logs(session)}
        assert statuses == {broken: "failed", healthy: "sent"}
        assert [order_id for order_id, _ in transport.sent] == [healthy]
        assert (summary.sent, summary.failed) == (1, 1)

    async def test_chat_orders_use_their_own_channel(self, session):
        rule = await add_rule(session, order_type="telegram", status_to=3)
        chat = await add_chat_order(session, status="ready_for_approval", first_name="Olga")
        transport = RecordingTransport()

        await NotificationRuleEngine(session, transport).check_order_notifications()

        logs = await _logs(session)
        assert [(l.order_id, l.order_type, l.rule_id) for l in logs] == [(chat.id, "telegram", rule.id)]
        assert logs[0].message == f"Order tg-ord-{chat.id} for Olga is now Ready"

    async def test_website_orders_use_source_qualified_number(self, session):
        await add_rule(session, status_to=3)
        order_id = await _order_at_status(session, 3, source="website")

        await NotificationRuleEngine(session).check_order_notifications()

        (log,) = await _logs(session)
        assert log.message == f"Order site-ord-{order_id} for Ivan Petrov is now Ready"

    async def test_overlapping_passes_send_once(self, session, session_maker):
        await add_rule(session, status_to=3)
        order_id = await _order_at_status(session, 3)
        transport = SlowTransport(delay=0.3)

        async def run_pass():
            async with session_maker() as own:
                return await NotificationRuleEngine(own, transport).check_order_notifications()

        first, second = await asyncio.gather(run_pass(), run_pass())

        assert first.sent + second.sent == 1
        assert first.skipped + second.skipped == 1
        assert transport.sent == [order_id]
        session.expire_all()
        assert [(l.order_id, l.status) for l in await _logs(session)] == [(order_id, "sent")]

    async def test_log_table_rejects_second_row_for_same_rule(self, session):
        rule = await add_rule(session, status_to=3)
        order_id = await _order_at_status(session, 3)
        for status in ("sent", "failed"):
            session.add(
                NotificationLog(
                    rule_id=rule.id,
                    order_id=order_id,
                    order_type="website",
                    message="Order ready",
                    status=status,
                    sent_at=utcnow(),
                )
            )
        with pytest.raises(IntegrityError):
            await session.flush()
        await session.rollback()

    async def test_all_scope_covers_both_populations(self, session):
        await add_rule(session, order_type="all", status_to=3)
        order_id = await _order_at_status(session, 3)
        chat = await add_chat_order(session, status="3")

        summary = await NotificationRuleEngine(session).check_order_notifications()

        channels = sorted((l.order_type, l.order_id) for l in await _logs(session))
        assert channels == [("telegram", chat.id), ("website", order_id)]
        assert summary.sent == 2

    async def test_orders_outside_recent_window_ignored(self, session):
        await add_rule(session, status_to=3)
        await _order_at_status(session, 3)

        summary = await NotificationRuleEngine(session).check_order_notifications(
            now=utcnow() + timedelta(hours=2)
        )

        assert summary.sent == 0


class TestRulesAndLogs:

    async def test_create_rule_and_list_logs(self, session):
        engine = NotificationRuleEngine(session)
        rule = await engine.create_rule(
            NotificationRuleCreate(
                name="Delivered",
                order_type="website",
                status_to=6,
                message_template="Order {orderNumber} delivered",
            )
        )
        service = OrderLifecycleService(session)
        order = await service.create_order_with_reservation(order_with())
        await service.update_order_status(order.id, 6)

        await engine.check_order_notifications()

        assert [r.id for r in await engine.list_rules()] == [rule.id]
        logs = await engine.list_logs(limit=10)
        assert [(l.rule_id, l.message) for l in logs] == [(rule.id, f"Order {order.number} delivered")]
