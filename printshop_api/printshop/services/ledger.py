from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.errors import NotFoundError
from printshop.db.models.inventory import Material, MaterialMove
from printshop.repositories.inventory import MaterialRepository
from printshop.services.base import BaseService

logger = logging.getLogger(__name__)


class MaterialLedger(BaseService):
    """
    The only write path for Material.quantity.

    Every delta is applied with a single UPDATE and paired with exactly one
    MaterialMove row, inside whatever transaction the caller's session has open.
    The ledger does not reject negative results: sufficiency checks belong to
    the deduction logic, while returns and manual corrections go through
    unconditionally.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.materials = MaterialRepository(session)

    # PUBLIC_INTERFACE
    async def apply_delta(
        self,
        material_id: int,
        delta: float,
        reason: str,
        order_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> MaterialMove:
        """
        Add a signed quantity to a material and record the audit move.

        Raises:
            NotFoundError: the material does not exist.
        Returns:
            The MaterialMove written for this change.
        """
        res = await self.session.execute(
            update(Material)
            .where(Material.id == material_id)
            .values(quantity=Material.quantity + delta)
        )
        if not res.rowcount:
            raise NotFoundError(f"Material {material_id} not found")

        move = MaterialMove(
            material_id=material_id,
            delta=delta,
            reason=reason,
            order_id=order_id,
            user_id=user_id,
        )
        await self.materials.add(move)
        await self.materials.flush()
        logger.debug(
            "Material %s moved by %s (%s, order=%s)", material_id, delta, reason, order_id
        )
        return move

    # PUBLIC_INTERFACE
    async def get_quantity(self, material_id: int) -> float:
        """Current on-hand quantity of a material."""
        material = await self.materials.get_material(material_id)
        if material is None:
            raise NotFoundError(f"Material {material_id} not found")
        return float(material.quantity)

    # PUBLIC_INTERFACE
    async def list_moves(
        self,
        *,
        material_id: Optional[int] = None,
        order_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MaterialMove]:
        """Audit trail, newest first."""
        return await self.materials.list_moves(
            material_id=material_id, order_id=order_id, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def low_stock(self) -> List[Material]:
        """Materials at or below their minimum threshold. Signaling only."""
        return await self.materials.list_low_stock()

    # PUBLIC_INTERFACE
    async def adjust(
        self, material_id: int, delta: float, reason: str, user_id: Optional[int] = None
    ) -> MaterialMove:
        """Manual stock correction committed as its own transaction."""
        async with self.transaction("adjust material"):
            move = await self.apply_delta(material_id, delta, reason, user_id=user_id)
        return move
