"""Product composition lookup: which materials one unit of a product consumes."""

from __future__ import annotations

import math
from typing import List, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.repositories.inventory import CompositionRepository
from printshop.schemas.inventory import MaterialComponent


class CompositionLookup(Protocol):
    """Read-only (product type, description) -> per-unit material usage."""

    async def components_for(self, product_type: str, description: str) -> List[MaterialComponent]:
        ...


class SqlCompositionLookup:
    """Composition backed by the product_materials reference table."""

    def __init__(self, session: AsyncSession) -> None:
        self.repo = CompositionRepository(session)

    async def components_for(self, product_type: str, description: str) -> List[MaterialComponent]:
        rows = await self.repo.list_for_product(product_type, description)
        return [MaterialComponent(material_id=r.material_id, qty_per_item=r.qty_per_item) for r in rows]


# PUBLIC_INTERFACE
def required_quantity(qty_per_item: float, item_quantity: float) -> int:
    """
    Whole units of a material needed for an item: per-unit usage times the
    item quantity (at least 1), rounded up.
    """
    raw = (qty_per_item or 0) * max(1, item_quantity or 1)
    # float noise such as 0.1 * 30 must not round up to an extra unit
    return math.ceil(round(raw, 6))
