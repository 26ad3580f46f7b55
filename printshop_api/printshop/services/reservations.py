from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.errors import NotFoundError, ValidationError
from printshop.db.base import utcnow
from printshop.db.models.inventory import MaterialReservation
from printshop.repositories.inventory import MaterialRepository, ReservationRepository
from printshop.schemas.inventory import ReservationRequest
from printshop.services.base import BaseService


class ReservationService(BaseService):
    """
    Time-bounded holds on material quantities.

    Reservations never touch Material.quantity. A reservation that is released
    or past its expires_at is void; every availability read here honours that,
    so no background reaper is needed for correctness.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.materials = MaterialRepository(session)
        self.reservations = ReservationRepository(session)

    # PUBLIC_INTERFACE
    async def reserve_materials(
        self, requests: Sequence[ReservationRequest], now: Optional[datetime] = None
    ) -> List[MaterialReservation]:
        """
        Persist each request as its own reservation row.

        Validation stops at the first bad request; batch atomicity comes from
        the caller rolling back its transaction.

        Raises:
            ValidationError: non-positive quantity or time-to-live.
            NotFoundError: unknown material.
        """
        now = now or utcnow()
        rows: List[MaterialReservation] = []
        for req in requests:
            if req.quantity <= 0:
                raise ValidationError(
                    f"Reservation quantity for material {req.material_id} must be positive"
                )
            if req.expires_in_hours <= 0:
                raise ValidationError("Reservation time-to-live must be positive")
            material = await self.materials.get_material(req.material_id)
            if material is None:
                raise NotFoundError(f"Material {req.material_id} not found")
            rows.append(
                MaterialReservation(
                    material_id=req.material_id,
                    order_id=req.order_id,
                    quantity=req.quantity,
                    reason=req.reason,
                    status="active",
                    created_at=now,
                    expires_at=now + timedelta(hours=req.expires_in_hours),
                )
            )
        await self.reservations.add_all(rows)
        await self.reservations.flush()
        return rows

    # PUBLIC_INTERFACE
    async def release_for_order(self, order_id: int) -> int:
        """Release every active reservation of an order; returns how many were released."""
        return await self.reservations.release_for_order(order_id)

    # PUBLIC_INTERFACE
    async def list_for_order(self, order_id: int) -> List[MaterialReservation]:
        return await self.reservations.list_for_order(order_id)

    # PUBLIC_INTERFACE
    async def active_reserved_quantity(
        self, material_id: int, now: Optional[datetime] = None
    ) -> float:
        """Sum of live (active, unexpired) reservations on a material."""
        return await self.reservations.sum_active(material_id, now or utcnow())

    # PUBLIC_INTERFACE
    async def available_quantity(self, material_id: int, now: Optional[datetime] = None) -> float:
        """On-hand quantity minus live reservations."""
        material = await self.materials.get_material(material_id)
        if material is None:
            raise NotFoundError(f"Material {material_id} not found")
        reserved = await self.active_reserved_quantity(material_id, now)
        return float(material.quantity) - reserved

    # PUBLIC_INTERFACE
    async def reserve(self, requests: Sequence[ReservationRequest]) -> List[MaterialReservation]:
        """Place a batch of reservations as one transaction; nothing is kept on failure."""
        async with self.transaction("reserve materials"):
            rows = await self.reserve_materials(requests)
        return rows

    # PUBLIC_INTERFACE
    async def release(self, order_id: int) -> int:
        async with self.transaction("release reservations"):
            released = await self.release_for_order(order_id)
        return released
