"""Tests for cross-channel order normalization and merging."""

from datetime import timedelta

from printshop.db.base import utcnow
from printshop.db.models.orders import LineItem
from printshop.schemas.orders import CustomerFields
from printshop.services.aggregator import OrderAggregator
from printshop.services.channels import (
    DirectRef,
    PoolRef,
    chat_status_for,
    normalize_chat_status,
    pooled_number,
)
from printshop.services.orders import OrderLifecycleService
from printshop.services.params import CORRUPT_PARAMS, decode_params
from tests.fakes import add_chat_order, assign_to_pool, flyers, order_with


class TestChannelHelpers:

    def test_refs_have_population_identity(self):
        assert DirectRef(5).uid == "order:5"
        assert PoolRef("website", 5).uid == "order:5"
        assert PoolRef("telegram", 5).uid == "chat:5"
        assert PoolRef("vk", 5).uid == "vk:5"

    def test_pooled_numbers(self):
        assert pooled_number("website", 12) == "site-ord-12"
        assert pooled_number("telegram", 12) == "tg-ord-12"
        assert pooled_number("email", 12) == "ord-12"

    def test_chat_status_vocabulary(self):
        assert normalize_chat_status("pending") == 1
        assert normalize_chat_status("ready_for_approval") == 3
        assert normalize_chat_status("cancelled") == 9
        assert normalize_chat_status("4") == 4
        assert chat_status_for(6) == "delivered"

    def test_corrupt_params_degrade_to_sentinel(self):
        assert decode_params("{not json", 3) == CORRUPT_PARAMS
        assert decode_params("") == {}


class TestListOrders:

    async def test_owned_and_unowned_orders_newest_first(self, session):
        service = OrderLifecycleService(session)
        older = await service.create_order(CustomerFields(user_id=1))
        unowned = await service.create_order(CustomerFields())
        await service.create_order(CustomerFields(user_id=2))
        older.created_at = utcnow() - timedelta(days=1)
        await session.commit()

        orders = await OrderAggregator(session).list_orders(1)

        assert [o.id for o in orders] == [unowned.id, older.id]

    async def test_chat_order_gets_one_virtual_item(self, session):
        chat = await add_chat_order(session, status="printing", quantity=20, total_price=120000)
        await assign_to_pool(session, 1, "telegram", chat.id)

        orders = await OrderAggregator(session).list_orders(1)

        assert len(orders) == 1
        normalized = orders[0]
        assert normalized.uid == f"chat:{chat.id}"
        assert normalized.number == f"tg-ord-{chat.id}"
        assert normalized.status == 4
        assert normalized.customer_name == "Olga"
        assert len(normalized.items) == 1
        item = normalized.items[0]
        assert item.id == chat.id * 1000
        assert item.price == 1200
        assert item.quantity == 20
        assert item.params["description"] == "Photo 10x15 (glossy)"

    async def test_pooled_website_order_not_listed_twice(self, session):
        service = OrderLifecycleService(session)
        order = await service.create_order_with_reservation(
            order_with(flyers(quantity=2, price=5), user_id=1, source="website")
        )
        await assign_to_pool(session, 1, "website", order.id)

        orders = await OrderAggregator(session).list_orders(1)

        assert [o.uid for o in orders] == [f"order:{order.id}"]
        assert orders[0].number == f"site-ord-{order.id}"
        assert orders[0].total_amount == 10

    async def test_unknown_channel_gets_placeholder(self, session):
        await assign_to_pool(session, 1, "vk", 42)

        orders = await OrderAggregator(session).list_orders(1)

        assert len(orders) == 1
        assert orders[0].number == "ord-42"
        assert orders[0].customer_name == "Customer"
        assert orders[0].items == []

    async def test_malformed_params_do_not_break_listing(self, session):
        service = OrderLifecycleService(session)
        order = await service.create_order(CustomerFields())
        session.add(LineItem(order_id=order.id, type="Poster", params="{broken", price=3, quantity=1))
        await session.commit()

        orders = await OrderAggregator(session).list_orders(None)

        assert orders[0].items[0].params == CORRUPT_PARAMS
        assert orders[0].total_amount == 3


class TestGetOrder:

    async def test_by_reference(self, session):
        service = OrderLifecycleService(session)
        order = await service.create_order(CustomerFields(customer_name="Anna"))
        chat = await add_chat_order(session)
        aggregator = OrderAggregator(session)

        direct = await aggregator.get_order(DirectRef(order.id))
        pooled = await aggregator.get_order(PoolRef("telegram", chat.id))

        assert direct.customer_name == "Anna"
        assert pooled.source == "telegram"
        assert await aggregator.get_order(DirectRef(999)) is None
        assert await aggregator.get_order(PoolRef("vk", order.id)) is None
