"""Tests for the periodic notification job."""

import asyncio

from printshop.core.settings import AppSettings
from printshop.jobs import scheduler as jobs
from printshop.schemas.orders import CustomerFields
from printshop.services.orders import OrderLifecycleService
from printshop.services.transport import RecordingTransport
from tests.fakes import add_rule


class TestRunNotificationPass:

    async def test_pass_uses_a_fresh_session(self, session, session_maker, monkeypatch):
        monkeypatch.setattr(jobs, "get_session_maker", lambda: session_maker)
        await add_rule(session)
        service = OrderLifecycleService(session)
        order = await service.create_order(CustomerFields(customer_name="Ivan Petrov"))
        await service.update_order_status(order.id, 3)
        transport = RecordingTransport()

        summary = await jobs.run_notification_pass(transport)

        assert summary.sent == 1
        assert [entry[0] for entry in transport.sent] == [order.id]

    async def test_pass_errors_are_logged_not_raised(self, monkeypatch):
        def broken_maker():
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(jobs, "get_session_maker", broken_maker)

        assert await jobs.run_notification_pass() is None


class TestSchedulerLifecycle:

    async def test_start_registers_single_job(self):
        jobs.start_scheduler(AppSettings(NOTIFICATION_INTERVAL_MINUTES=7))
        try:
            status = jobs.get_job_status()
            assert [job["id"] for job in status] == [jobs.NOTIFICATION_JOB_ID]
            assert "0:07:00" in status[0]["trigger"]
        finally:
            jobs.shutdown_scheduler()

        # AsyncIOScheduler applies shutdown on the next loop iteration
        await asyncio.sleep(0)
        assert not jobs.scheduler.running
