from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.repositories.inventory import MaterialRepository
from printshop.schemas.inventory import DeductionItem, DeductionResult, MaterialDeduction
from printshop.services.base import BaseService
from printshop.services.composition import (
    CompositionLookup,
    SqlCompositionLookup,
    required_quantity,
)
from printshop.services.ledger import MaterialLedger
from printshop.services.params import params_description
from printshop.services.reservations import ReservationService

logger = logging.getLogger(__name__)

DEDUCTION_REASON = "order create"


class AutoDeductionService(BaseService):
    """
    Immediate, permanent stock deduction for the items of a new order.

    Problems are collected rather than raised: the result lists one reason per
    failing item/material pair and the caller rolls back its transaction when
    `success` is False. Partial results must never be committed.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        composition: Optional[CompositionLookup] = None,
        ledger: Optional[MaterialLedger] = None,
        reservations: Optional[ReservationService] = None,
    ) -> None:
        super().__init__(session)
        self.materials = MaterialRepository(session)
        self.composition = composition or SqlCompositionLookup(session)
        self.ledger = ledger or MaterialLedger(session)
        self.reservations = reservations or ReservationService(session)

    # PUBLIC_INTERFACE
    async def deduct_materials_for_order(
        self,
        order_id: int,
        items: Sequence[DeductionItem],
        acting_user_id: Optional[int] = None,
    ) -> DeductionResult:
        """
        Resolve each item's materials and deduct them through the ledger.

        Explicit components on an item take precedence over the composition
        table, which is keyed by (item type, params description).
        """
        errors: List[str] = []
        deductions: List[MaterialDeduction] = []

        for item in items:
            try:
                components = item.components
                if components is None:
                    components = await self.composition.components_for(
                        item.type, params_description(item.params)
                    )
            except Exception as exc:
                logger.exception("Composition lookup failed for item %r", item.type)
                errors.append(f"{item.type}: composition lookup failed ({exc})")
                continue

            if not components:
                logger.debug("No material composition for %r, nothing to deduct", item.type)

            for component in components:
                needed = required_quantity(component.qty_per_item, item.quantity)
                if needed <= 0:
                    continue
                try:
                    material = await self.materials.get_material_for_update(component.material_id)
                    if material is None:
                        errors.append(f"{item.type}: material {component.material_id} not found")
                        continue
                    available = float(material.quantity) - await self.reservations.active_reserved_quantity(
                        component.material_id
                    )
                    if available < needed:
                        errors.append(
                            f"{item.type}: not enough {material.name} "
                            f"(required {needed}, available {available:g})"
                        )
                        continue
                    await self.ledger.apply_delta(
                        component.material_id,
                        -needed,
                        DEDUCTION_REASON,
                        order_id=order_id,
                        user_id=acting_user_id,
                    )
                    deductions.append(
                        MaterialDeduction(
                            material_id=component.material_id,
                            quantity=needed,
                            item_type=item.type,
                        )
                    )
                except Exception as exc:
                    logger.exception(
                        "Deduction of material %s for order %s failed", component.material_id, order_id
                    )
                    errors.append(f"{item.type}: material {component.material_id} deduction failed ({exc})")

        return DeductionResult(success=not errors, errors=errors, deductions=deductions)
