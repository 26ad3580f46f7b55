"""Tests for the material ledger: the single write path for stock."""

import pytest

from printshop.core.errors import NotFoundError
from printshop.services.ledger import MaterialLedger
from tests.fakes import add_material


class TestApplyDelta:

    async def test_delta_changes_quantity_and_writes_one_move(self, session):
        paper = await add_material(session, "Paper-150", 100)
        ledger = MaterialLedger(session)

        move = await ledger.adjust(paper.id, -15, "manual correction", user_id=7)

        assert await ledger.get_quantity(paper.id) == 85
        moves = await ledger.list_moves(material_id=paper.id)
        assert len(moves) == 1
        assert moves[0].id == move.id
        assert moves[0].delta == -15
        assert moves[0].reason == "manual correction"
        assert moves[0].user_id == 7

    async def test_quantity_may_go_negative(self, session):
        paper = await add_material(session, "Paper-150", 5)
        ledger = MaterialLedger(session)

        await ledger.adjust(paper.id, -8, "inventory count")

        assert await ledger.get_quantity(paper.id) == -3

    async def test_unknown_material_rejected_without_move(self, session):
        ledger = MaterialLedger(session)

        with pytest.raises(NotFoundError, match="Material 999"):
            await ledger.adjust(999, 10, "receipt")

        assert await ledger.list_moves() == []

    async def test_moves_filtered_by_order(self, session):
        paper = await add_material(session, "Paper-150", 100)
        ledger = MaterialLedger(session)

        async with ledger.transaction("test moves"):
            await ledger.apply_delta(paper.id, -1, "order create", order_id=1)
            await ledger.apply_delta(paper.id, -2, "order create", order_id=2)

        moves = await ledger.list_moves(order_id=2)
        assert [m.delta for m in moves] == [-2]


class TestLowStock:

    async def test_materials_at_or_below_minimum(self, session):
        await add_material(session, "Film", 3, min_quantity=5)
        await add_material(session, "Paper-150", 100, min_quantity=20)
        await add_material(session, "Toner", 2)

        low = await MaterialLedger(session).low_stock()

        assert [m.name for m in low] == ["Film"]
