"""Tests for automatic material deduction at order creation."""

import pytest
from sqlalchemy import func, select

from printshop.core.errors import DeductionError
from printshop.db.models.orders import LineItem, Order
from printshop.schemas.inventory import DeductionItem, MaterialComponent, ReservationRequest
from printshop.services.composition import required_quantity
from printshop.services.deduction import AutoDeductionService
from printshop.services.ledger import MaterialLedger
from printshop.services.orders import OrderLifecycleService
from printshop.services.reservations import ReservationService
from tests.fakes import StaticCompositionLookup, add_composition, add_material, flyers, order_with


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestRequiredQuantity:

    @pytest.mark.parametrize(
        "per_item, quantity, expected",
        [
            (1, 10, 10),
            (0.1, 30, 3),
            (0.25, 3, 1),
            (2, 0, 2),
            (0.5, 1, 1),
        ],
    )
    def test_rounds_up_to_whole_units(self, per_item, quantity, expected):
        assert required_quantity(per_item, quantity) == expected


class TestAutoDeductionService:

    async def test_collects_every_failure(self, session):
        paper = await add_material(session, "Paper-150", 5)
        film = await add_material(session, "Film", 1)
        lookup = StaticCompositionLookup(
            {
                ("Flyers", "A5 flyers"): [MaterialComponent(material_id=paper.id, qty_per_item=1)],
                ("Laminated card", ""): [MaterialComponent(material_id=film.id, qty_per_item=1)],
            }
        )
        service = AutoDeductionService(session, composition=lookup)

        result = await service.deduct_materials_for_order(
            1,
            [
                DeductionItem(type="Flyers", params={"description": "A5 flyers"}, quantity=10),
                DeductionItem(type="Laminated card", quantity=4),
            ],
        )
        await session.rollback()

        assert result.success is False
        assert len(result.errors) == 2
        assert "not enough Paper-150" in result.errors[0]
        assert "not enough Film" in result.errors[1]

    async def test_explicit_components_override_composition(self, session):
        paper = await add_material(session, "Paper-150", 100)
        lookup = StaticCompositionLookup()
        service = AutoDeductionService(session, composition=lookup)

        result = await service.deduct_materials_for_order(
            1,
            [
                DeductionItem(
                    type="Custom",
                    quantity=4,
                    components=[MaterialComponent(material_id=paper.id, qty_per_item=0.5)],
                )
            ],
        )
        await session.commit()

        assert result.success is True
        assert lookup.calls == []
        assert [(d.material_id, d.quantity) for d in result.deductions] == [(paper.id, 2)]
        assert await MaterialLedger(session).get_quantity(paper.id) == 98

    async def test_active_reservations_reduce_what_can_be_deducted(self, session):
        paper = await add_material(session, "Paper-150", 12)
        await ReservationService(session).reserve(
            [ReservationRequest(material_id=paper.id, quantity=5)]
        )
        service = AutoDeductionService(
            session,
            composition=StaticCompositionLookup(
                {("Flyers", "A5 flyers"): [MaterialComponent(material_id=paper.id, qty_per_item=1)]}
            ),
        )

        result = await service.deduct_materials_for_order(
            1, [DeductionItem(type="Flyers", params={"description": "A5 flyers"}, quantity=10)]
        )

        assert result.success is False
        assert "available 7" in result.errors[0]

    async def test_item_without_composition_deducts_nothing(self, session):
        service = AutoDeductionService(session, composition=StaticCompositionLookup())

        result = await service.deduct_materials_for_order(1, [DeductionItem(type="Design work")])

        assert result.success is True
        assert result.deductions == []


class TestCreateOrderWithAutoDeduction:

    async def test_paper_scenario_deduct_then_return_on_delete(self, session):
        paper = await add_material(session, "Paper-150", 100)
        await add_composition(session, "Flyers", "A5 flyers", paper.id, 1)
        service = OrderLifecycleService(session)
        ledger = MaterialLedger(session)

        created = await service.create_order_with_auto_deduction(order_with(flyers(quantity=10)))

        assert created.deduction.success is True
        assert await ledger.get_quantity(paper.id) == 90
        moves = await ledger.list_moves(material_id=paper.id)
        assert [(m.delta, m.reason) for m in moves] == [(-10, "order create")]

        await service.delete_order(created.order.id, acting_user_id=3)

        assert await ledger.get_quantity(paper.id) == 100
        moves = await ledger.list_moves(material_id=paper.id)
        assert [(m.delta, m.reason) for m in moves] == [(10, "order delete"), (-10, "order create")]

    async def test_failure_leaves_stock_and_orders_untouched(self, session):
        paper = await add_material(session, "Paper-150", 100)
        film = await add_material(session, "Film", 2)
        await add_composition(session, "Flyers", "A5 flyers", paper.id, 1)
        await add_composition(session, "Flyers", "Laminated", film.id, 1)
        await add_composition(session, "Flyers", "Laminated", paper.id, 1)
        paper_id, film_id = paper.id, film.id
        service = OrderLifecycleService(session)

        with pytest.raises(DeductionError) as info:
            await service.create_order_with_auto_deduction(
                order_with(flyers(quantity=10), flyers(quantity=5, description="Laminated"))
            )

        assert len(info.value.errors) == 1
        assert "not enough Film" in info.value.errors[0]
        assert await MaterialLedger(session).get_quantity(paper_id) == 100
        assert await MaterialLedger(session).get_quantity(film_id) == 2
        assert await MaterialLedger(session).list_moves() == []
        assert await _count(session, Order) == 0
        assert await _count(session, LineItem) == 0

    async def test_every_failure_reason_is_surfaced(self, session):
        paper = await add_material(session, "Paper-150", 1)
        film = await add_material(session, "Film", 0)
        await add_composition(session, "Flyers", "A5 flyers", paper.id, 1)
        await add_composition(session, "Flyers", "Laminated", film.id, 1)
        service = OrderLifecycleService(session)

        with pytest.raises(DeductionError) as info:
            await service.create_order_with_auto_deduction(
                order_with(flyers(quantity=10), flyers(quantity=5, description="Laminated"))
            )

        assert len(info.value.errors) == 2
        assert "Paper-150" in str(info.value)
        assert "Film" in str(info.value)
