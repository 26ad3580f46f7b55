"""Tests for time-bounded material reservations."""

from datetime import timedelta

import pytest

from printshop.core.errors import NotFoundError, ValidationError
from printshop.db.base import ensure_utc, utcnow
from printshop.schemas.inventory import ReservationRequest
from printshop.services.ledger import MaterialLedger
from printshop.services.orders import OrderLifecycleService
from printshop.services.reservations import ReservationService
from tests.fakes import add_material, order_with


class TestReserve:

    async def test_reservation_holds_without_touching_stock(self, session):
        paper = await add_material(session, "Paper-150", 100)
        service = ReservationService(session)

        rows = await service.reserve(
            [ReservationRequest(material_id=paper.id, quantity=30, reason="hold")]
        )

        assert len(rows) == 1
        assert rows[0].status == "active"
        assert ensure_utc(rows[0].expires_at) - ensure_utc(rows[0].created_at) == timedelta(hours=24)
        assert await MaterialLedger(session).get_quantity(paper.id) == 100
        assert await service.available_quantity(paper.id) == 70

    async def test_expired_reservation_is_void(self, session):
        paper = await add_material(session, "Paper-150", 100)
        service = ReservationService(session)

        async with service.transaction("old hold"):
            await service.reserve_materials(
                [ReservationRequest(material_id=paper.id, quantity=40, expires_in_hours=1)],
                now=utcnow() - timedelta(hours=2),
            )

        assert await service.active_reserved_quantity(paper.id) == 0
        assert await service.available_quantity(paper.id) == 100

    async def test_batch_is_all_or_nothing(self, session):
        paper = await add_material(session, "Paper-150", 100)
        paper_id = paper.id
        service = ReservationService(session)

        with pytest.raises(NotFoundError):
            await service.reserve(
                [
                    ReservationRequest(material_id=paper_id, quantity=10),
                    ReservationRequest(material_id=424242, quantity=10),
                ]
            )

        assert await service.active_reserved_quantity(paper_id) == 0

    @pytest.mark.parametrize("quantity", [0, -5])
    async def test_non_positive_quantity_rejected(self, session, quantity):
        paper = await add_material(session, "Paper-150", 100)

        with pytest.raises(ValidationError, match="must be positive"):
            await ReservationService(session).reserve(
                [ReservationRequest(material_id=paper.id, quantity=quantity)]
            )

    async def test_non_positive_ttl_rejected(self, session):
        paper = await add_material(session, "Paper-150", 100)

        with pytest.raises(ValidationError, match="time-to-live"):
            await ReservationService(session).reserve(
                [ReservationRequest(material_id=paper.id, quantity=1, expires_in_hours=0)]
            )


class TestRelease:

    async def test_release_frees_the_quantity(self, session):
        paper = await add_material(session, "Paper-150", 100)
        order = await OrderLifecycleService(session).create_order(order_with())
        service = ReservationService(session)
        await service.reserve(
            [ReservationRequest(material_id=paper.id, quantity=25, order_id=order.id)]
        )

        released = await service.release(order.id)

        assert released == 1
        assert [r.status for r in await service.list_for_order(order.id)] == ["released"]
        assert await service.available_quantity(paper.id) == 100
