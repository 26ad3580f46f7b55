from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update

from printshop.db.models.inventory import (
    Material,
    MaterialMove,
    MaterialReservation,
    ProductMaterial,
)
from .base import BaseRepository


class MaterialRepository(BaseRepository):
    """Repository for materials and their audit moves."""

    async def get_material(self, material_id: int) -> Optional[Material]:
        stmt = (
            select(Material)
            .where(Material.id == material_id)
            .execution_options(populate_existing=True)
        )
        return await self.one_or_none(stmt)

    async def get_material_for_update(self, material_id: int) -> Optional[Material]:
        # Row lock on PostgreSQL; ignored by SQLite, which serializes writers anyway.
        stmt = (
            select(Material)
            .where(Material.id == material_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.one_or_none(stmt)

    async def list_materials(self, limit: int = 100, offset: int = 0) -> List[Material]:
        stmt = select(Material).order_by(Material.name).offset(offset).limit(limit)
        return await self.scalars(stmt)

    async def list_low_stock(self) -> List[Material]:
        stmt = (
            select(Material)
            .where(Material.min_quantity.is_not(None))
            .where(Material.quantity <= Material.min_quantity)
            .order_by(Material.name)
        )
        return await self.scalars(stmt)

    async def list_moves(
        self,
        *,
        material_id: Optional[int] = None,
        order_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MaterialMove]:
        stmt = select(MaterialMove)
        if material_id is not None:
            stmt = stmt.where(MaterialMove.material_id == material_id)
        if order_id is not None:
            stmt = stmt.where(MaterialMove.order_id == order_id)
        stmt = stmt.order_by(MaterialMove.id.desc()).offset(offset).limit(limit)
        return await self.scalars(stmt)


class ReservationRepository(BaseRepository):
    """Repository for material reservations."""

    async def list_for_order(self, order_id: int) -> List[MaterialReservation]:
        stmt = (
            select(MaterialReservation)
            .where(MaterialReservation.order_id == order_id)
            .order_by(MaterialReservation.id)
        )
        return await self.scalars(stmt)

    async def sum_active(self, material_id: int, now: datetime) -> float:
        stmt = select(func.coalesce(func.sum(MaterialReservation.quantity), 0.0)).where(
            MaterialReservation.material_id == material_id,
            MaterialReservation.status == "active",
            MaterialReservation.expires_at > now,
        )
        res = await self.execute(stmt)
        return float(res.scalar_one())

    async def release_for_order(self, order_id: int) -> int:
        stmt = (
            update(MaterialReservation)
            .where(
                MaterialReservation.order_id == order_id,
                MaterialReservation.status == "active",
            )
            .values(status="released")
        )
        res = await self.execute(stmt)
        return res.rowcount or 0


class CompositionRepository(BaseRepository):
    """Read-only access to product -> material composition."""

    async def list_for_product(self, category: str, description: str) -> List[ProductMaterial]:
        stmt = (
            select(ProductMaterial)
            .where(
                ProductMaterial.preset_category == category,
                ProductMaterial.preset_description == description,
            )
            .order_by(ProductMaterial.id)
        )
        return await self.scalars(stmt)
