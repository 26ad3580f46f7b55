from __future__ import annotations

import io
import json
import logging
from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.errors import DeductionError, NotFoundError, ValidationError
from printshop.core.settings import AppSettings, get_app_settings
from printshop.db.base import utcnow
from printshop.db.models.orders import LineItem, Order, OrderStatusEvent
from printshop.repositories.orders import (
    ChatOrderRepository,
    OrderRepository,
    StatusEventRepository,
)
from printshop.schemas.inventory import DeductionItem, ReservationRequest
from printshop.schemas.orders import (
    BulkDeleteResult,
    BulkStatusResult,
    CustomerFields,
    LineItemCreate,
    LineItemRead,
    NormalizedOrder,
    OrderCreate,
    OrderRead,
    OrderSearchFilters,
    OrdersStats,
    OrderStatus,
    OrderWithDeduction,
)
from printshop.services.aggregator import OrderAggregator, line_item_read, normalize_direct
from printshop.services.base import BaseService
from printshop.services.channels import (
    TELEGRAM,
    WEBSITE,
    DirectRef,
    OrderRef,
    PoolRef,
    chat_status_for,
    normalize_chat_status,
)
from printshop.services.composition import (
    CompositionLookup,
    SqlCompositionLookup,
    required_quantity,
)
from printshop.services.deduction import AutoDeductionService
from printshop.services.ledger import MaterialLedger
from printshop.services.params import decode_params, encode_params, params_description
from printshop.services.pricing import PricingResolver, resolve_unit_price
from printshop.services.reservations import ReservationService

logger = logging.getLogger(__name__)

DELETE_REASON = "order delete"
EXPORT_LIMIT = 10000

EXPORT_COLUMNS = [
    "ID",
    "Number",
    "Status",
    "Created",
    "Customer",
    "Phone",
    "Email",
    "Prepayment",
    "Payment method",
    "Items",
    "Total",
]


class OrderLifecycleService(BaseService):
    """
    Orchestrates order creation, status transitions, duplication, deletion
    (with inventory return), search and reporting.

    Every multi-step mutation runs as one transaction on the service's
    session; the ledger, reservation and deduction services are built on that
    same session so they join the transaction instead of opening their own.
    Order status is only ever written through `_transition`.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        composition: Optional[CompositionLookup] = None,
        pricing: Optional[PricingResolver] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.clock = clock
        self.pricing = pricing
        self.orders = OrderRepository(session)
        self.chat_orders = ChatOrderRepository(session)
        self.status_events = StatusEventRepository(session)
        self.composition = composition or SqlCompositionLookup(session)
        self.ledger = MaterialLedger(session)
        self.reservations = ReservationService(session)
        self.deduction = AutoDeductionService(
            session,
            composition=self.composition,
            ledger=self.ledger,
            reservations=self.reservations,
        )
        self.aggregator = OrderAggregator(session)

    # ------------------------------------------------------------------ create

    # PUBLIC_INTERFACE
    async def create_order(self, fields: CustomerFields) -> Order:
        """
        Create an empty order with status 1.

        The display number embeds the generated id, so it is assigned right
        after the insert. Missing optional fields stay NULL.
        """
        async with self.transaction("create order"):
            order = await self._insert_order(fields)
        return order

    # PUBLIC_INTERFACE
    async def create_order_with_reservation(self, payload: OrderCreate) -> Order:
        """
        Create an order with its items and reserve the materials they need.

        Each requirement is per unit and gets multiplied by the item quantity.
        All reservations go in one batch; any failure rolls back the order, the
        items and every reservation.
        """
        async with self.transaction("create order with reservation"):
            order = await self._insert_order(payload)
            await self._insert_items(order.id, payload.items)

            requests: List[ReservationRequest] = []
            for item in payload.items:
                for requirement in item.material_requirements or []:
                    requests.append(
                        ReservationRequest(
                            material_id=requirement.material_id,
                            quantity=requirement.quantity * item.quantity,
                            order_id=order.id,
                            reason=f"Reserve for order {order.number}",
                            expires_in_hours=self.settings.RESERVATION_TTL_HOURS,
                        )
                    )
            if requests:
                await self.reservations.reserve_materials(requests, now=self.clock())
        return order

    # PUBLIC_INTERFACE
    async def create_order_with_auto_deduction(self, payload: OrderCreate) -> OrderWithDeduction:
        """
        Create an order with its items and permanently deduct their materials.

        Raises:
            DeductionError: listing every unresolved requirement; nothing is kept.
        """
        async with self.transaction("create order with auto deduction"):
            order = await self._insert_order(payload)
            await self._insert_items(order.id, payload.items)

            deduction_items = [
                DeductionItem(
                    type=item.type,
                    params=_as_mapping(item.params),
                    quantity=item.quantity,
                    components=item.components,
                )
                for item in payload.items
            ]
            result = await self.deduction.deduct_materials_for_order(
                order.id, deduction_items, payload.user_id
            )
            if not result.success:
                raise DeductionError(result.errors)
        return OrderWithDeduction(order=OrderRead.model_validate(order), deduction=result)

    # PUBLIC_INTERFACE
    async def add_order_item(self, order_id: int, item: LineItemCreate) -> LineItemRead:
        """Append a line item to an existing direct order."""
        async with self.transaction("add order item"):
            order = await self.orders.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            rows = await self._insert_items(order_id, [item])
        return line_item_read(rows[0])

    async def _insert_order(self, fields: CustomerFields) -> Order:
        now = self.clock()
        created_at = (
            datetime.combine(fields.created_on, time(12, 0), tzinfo=timezone.utc)
            if fields.created_on
            else now
        )
        order = Order(
            status=int(OrderStatus.ACCEPTED),
            source=fields.source,
            created_at=created_at,
            updated_at=now,
            customer_name=fields.customer_name or None,
            customer_phone=fields.customer_phone or None,
            customer_email=fields.customer_email or None,
            prepayment_amount=fields.prepayment_amount,
            user_id=fields.user_id,
        )
        await self.orders.add(order)
        await self.orders.flush()
        order.number = f"ORD-{order.id:04d}"
        await self.orders.flush()
        return order

    async def _insert_items(self, order_id: int, items: Sequence[LineItemCreate]) -> List[LineItem]:
        rows = [
            LineItem(
                order_id=order_id,
                type=item.type,
                params=encode_params(item.params),
                price=resolve_unit_price(item, self.pricing),
                quantity=item.quantity,
                printer_id=item.printer_id,
                sides=item.sides,
                sheets=item.sheets,
                waste=item.waste,
                clicks=item.clicks,
            )
            for item in items
        ]
        await self.orders.add_all(rows)
        await self.orders.flush()
        return rows

    # ------------------------------------------------------------------ status

    # PUBLIC_INTERFACE
    async def update_order_status(self, order_id: int, status: int) -> NormalizedOrder:
        """
        Move an order to `status`.

        Ids are not unique across channels, so the chat population is checked
        first and the orders table second; only the first match is updated.

        Raises:
            NotFoundError: neither population has the id.
        """
        async with self.transaction("update order status"):
            ref = await self._transition(order_id, status)
        normalized = await self.aggregator.get_order(ref)
        if normalized is None:
            raise NotFoundError(f"Order {order_id} not found")
        return normalized

    # PUBLIC_INTERFACE
    async def bulk_update_order_status(self, order_ids: Sequence[int], status: int) -> BulkStatusResult:
        """Apply one transition to many orders; all or nothing."""
        if not order_ids:
            raise ValidationError("No orders selected")
        async with self.transaction("bulk update order status"):
            for order_id in order_ids:
                await self._transition(order_id, status)
        return BulkStatusResult(updated_count=len(order_ids), new_status=status)

    async def _transition(self, order_id: int, status: int) -> OrderRef:
        now = self.clock()
        chat = await self.chat_orders.get_chat_order(order_id)
        if chat is not None:
            previous = normalize_chat_status(chat.status)
            chat.status = chat_status_for(status)
            chat.updated_at = now
            await self._record_transition(TELEGRAM, order_id, previous, status, now)
            return PoolRef(TELEGRAM, order_id)

        order = await self.orders.get_order(order_id)
        if order is not None:
            previous = order.status
            order.status = status
            order.updated_at = now
            await self._record_transition(WEBSITE, order_id, previous, status, now)
            return DirectRef(order_id)

        raise NotFoundError(f"Order {order_id} not found")

    async def _record_transition(
        self, channel: str, order_id: int, previous: Optional[int], status: int, now: datetime
    ) -> None:
        await self.status_events.add(
            OrderStatusEvent(
                order_type=channel,
                order_id=order_id,
                from_status=previous,
                to_status=status,
                created_at=now,
            )
        )
        await self.status_events.flush()

    # ------------------------------------------------------------------ delete

    # PUBLIC_INTERFACE
    async def delete_order(self, order_id: int, acting_user_id: Optional[int] = None) -> None:
        """
        Delete an order and put the materials its items consumed back in stock.

        One positive ledger move per material (reason "order delete") is written
        before the order row goes; items and reservations follow by cascade.
        A failure at any step leaves stock and the order untouched.
        """
        async with self.transaction("delete order"):
            await self._delete_with_return(order_id, acting_user_id)

    # PUBLIC_INTERFACE
    async def bulk_delete_orders(
        self, order_ids: Sequence[int], acting_user_id: Optional[int] = None
    ) -> BulkDeleteResult:
        """Delete many orders with inventory return inside one transaction."""
        if not order_ids:
            raise ValidationError("No orders selected")
        async with self.transaction("bulk delete orders"):
            for order_id in order_ids:
                await self._delete_with_return(order_id, acting_user_id)
        return BulkDeleteResult(deleted_count=len(order_ids))

    # PUBLIC_INTERFACE
    async def compute_material_returns(self, order_id: int) -> Dict[int, int]:
        """Whole units per material that the order's items consumed."""
        returns: Dict[int, int] = defaultdict(int)
        for item in await self.orders.list_items(order_id):
            description = params_description(decode_params(item.params, item.id))
            for component in await self.composition.components_for(item.type, description):
                returns[component.material_id] += required_quantity(
                    component.qty_per_item, item.quantity
                )
        return dict(returns)

    async def _delete_with_return(self, order_id: int, acting_user_id: Optional[int]) -> None:
        order = await self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        returns = await self.compute_material_returns(order_id)
        for material_id, quantity in sorted(returns.items()):
            if quantity > 0:
                await self.ledger.apply_delta(
                    material_id,
                    quantity,
                    DELETE_REASON,
                    order_id=order_id,
                    user_id=acting_user_id,
                )

        await self.orders.delete_order(order_id)
        logger.info("Order %s deleted, %d material(s) returned", order_id, len(returns))

    # --------------------------------------------------------------- duplicate

    # PUBLIC_INTERFACE
    async def duplicate_order(self, order_id: int) -> NormalizedOrder:
        """
        Copy an order and its items. The copy starts at status 1 with the
        prepayment cleared; item params are copied byte for byte.
        """
        async with self.transaction("duplicate order"):
            original = await self.orders.get_order(order_id)
            if original is None:
                raise NotFoundError(f"Order {order_id} not found")
            now = self.clock()
            base_number = original.number or f"ORD-{original.id:04d}"
            duplicate = Order(
                number=f"{base_number}-COPY-{int(now.timestamp() * 1000)}",
                status=int(OrderStatus.ACCEPTED),
                source=original.source,
                created_at=now,
                updated_at=now,
                customer_name=original.customer_name,
                customer_phone=original.customer_phone,
                customer_email=original.customer_email,
                prepayment_amount=None,
                prepayment_status=None,
                user_id=original.user_id,
            )
            await self.orders.add(duplicate)
            await self.orders.flush()

            copied = [
                LineItem(
                    order_id=duplicate.id,
                    type=item.type,
                    params=item.params,
                    price=item.price,
                    quantity=item.quantity,
                    printer_id=item.printer_id,
                    sides=item.sides,
                    sheets=item.sheets,
                    waste=item.waste,
                    clicks=item.clicks,
                )
                for item in await self.orders.list_items(order_id)
            ]
            await self.orders.add_all(copied)
            await self.orders.flush()
        return normalize_direct(duplicate, copied)

    # ------------------------------------------------------------ read / report

    # PUBLIC_INTERFACE
    async def search_orders(
        self, owner_id: Optional[int], filters: OrderSearchFilters
    ) -> List[NormalizedOrder]:
        """
        Filter the owner's visible orders. The total used by min/max amount is
        Σ price × quantity over the items, 0 for an order without items.
        """
        rows = await self.orders.search(owner_id, filters)
        items = await self.orders.list_items_for_orders([order.id for order, _ in rows])
        by_order: Dict[int, List[LineItem]] = defaultdict(list)
        for item in items:
            by_order[item.order_id].append(item)

        results = []
        for order, total in rows:
            normalized = normalize_direct(order, by_order.get(order.id, []))
            normalized.total_amount = total
            results.append(normalized)
        return results

    # PUBLIC_INTERFACE
    async def get_orders_stats(
        self,
        owner_id: Optional[int],
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> OrdersStats:
        """Counts per status plus revenue and prepayment figures."""
        return OrdersStats(**await self.orders.stats(owner_id, date_from, date_to))

    # PUBLIC_INTERFACE
    async def export_orders(
        self,
        owner_id: Optional[int],
        export_format: str = "csv",
        filters: Optional[OrderSearchFilters] = None,
    ) -> str:
        """Render the owner's orders (or a search result) as CSV or JSON text."""
        export_format = (export_format or "csv").lower()
        if export_format not in ("csv", "json"):
            raise ValidationError(f"Unsupported export format: {export_format}")

        if filters is not None:
            orders = await self.search_orders(
                owner_id, filters.model_copy(update={"limit": EXPORT_LIMIT})
            )
        else:
            orders = await self.aggregator.list_orders(owner_id)

        if export_format == "json":
            return json.dumps(
                [o.model_dump(mode="json") for o in orders], indent=2, ensure_ascii=False
            )

        df = pd.DataFrame(
            [
                [
                    o.id,
                    o.number,
                    o.status,
                    o.created_at.isoformat(),
                    o.customer_name or "",
                    o.customer_phone or "",
                    o.customer_email or "",
                    o.prepayment_amount or 0,
                    o.payment_method or "",
                    len(o.items),
                    o.total_amount,
                ]
                for o in orders
            ],
            columns=EXPORT_COLUMNS,
        )
        buffer = io.StringIO()
        df.to_csv(buffer, index=False)
        return buffer.getvalue()


def _as_mapping(params) -> dict:
    if isinstance(params, str):
        decoded = decode_params(params)
        return decoded if isinstance(decoded, dict) else {}
    return dict(params or {})
