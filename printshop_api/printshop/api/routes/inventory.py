from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.deps import get_owner_id, get_session
from printshop.repositories.inventory import MaterialRepository
from printshop.schemas.common import MessageResponse
from printshop.schemas.inventory import (
    MaterialAdjust,
    MaterialMoveRead,
    MaterialRead,
    ReservationRead,
    ReservationRequest,
)
from printshop.services.ledger import MaterialLedger
from printshop.services.reservations import ReservationService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


# PUBLIC_INTERFACE
@router.get(
    "/materials",
    response_model=List[MaterialRead],
    summary="List materials",
    description="List stock materials ordered by name.",
)
async def list_materials(
    session: AsyncSession = Depends(get_session),
    limit: int = Query(100, ge=1, le=1000, description="Max records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
) -> List[MaterialRead]:
    repo = MaterialRepository(session)
    records = await repo.list_materials(limit=limit, offset=offset)
    return [MaterialRead.model_validate(r) for r in records]


# PUBLIC_INTERFACE
@router.get(
    "/materials/low-stock",
    response_model=List[MaterialRead],
    summary="Materials at or below their minimum",
)
async def list_low_stock(session: AsyncSession = Depends(get_session)) -> List[MaterialRead]:
    return [MaterialRead.model_validate(m) for m in await MaterialLedger(session).low_stock()]


# PUBLIC_INTERFACE
@router.get("/materials/{material_id}", response_model=MaterialRead, summary="Get a material")
async def get_material(material_id: int, session: AsyncSession = Depends(get_session)) -> MaterialRead:
    material = await MaterialRepository(session).get_material(material_id)
    if material is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material not found")
    return MaterialRead.model_validate(material)


# PUBLIC_INTERFACE
@router.get(
    "/materials/{material_id}/available",
    response_model=MessageResponse,
    summary="On-hand quantity minus live reservations",
)
async def get_available_quantity(
    material_id: int, session: AsyncSession = Depends(get_session)
) -> MessageResponse:
    available = await ReservationService(session).available_quantity(material_id)
    return MessageResponse(message="ok", details={"material_id": material_id, "available": available})


# PUBLIC_INTERFACE
@router.post(
    "/materials/{material_id}/adjust",
    response_model=MaterialMoveRead,
    status_code=status.HTTP_201_CREATED,
    summary="Manual stock correction",
)
async def adjust_material(
    material_id: int,
    payload: MaterialAdjust,
    owner_id: Optional[int] = Depends(get_owner_id),
    session: AsyncSession = Depends(get_session),
) -> MaterialMoveRead:
    move = await MaterialLedger(session).adjust(material_id, payload.delta, payload.reason, owner_id)
    return MaterialMoveRead.model_validate(move)


# PUBLIC_INTERFACE
@router.get(
    "/moves",
    response_model=List[MaterialMoveRead],
    summary="Ledger audit trail",
    description="Material moves, newest first, optionally filtered by material or order.",
)
async def list_moves(
    session: AsyncSession = Depends(get_session),
    material_id: Optional[int] = Query(None),
    order_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[MaterialMoveRead]:
    moves = await MaterialLedger(session).list_moves(
        material_id=material_id, order_id=order_id, limit=limit, offset=offset
    )
    return [MaterialMoveRead.model_validate(m) for m in moves]


# PUBLIC_INTERFACE
@router.post(
    "/reservations",
    response_model=List[ReservationRead],
    status_code=status.HTTP_201_CREATED,
    summary="Reserve materials",
)
async def reserve_materials(
    payload: List[ReservationRequest],
    session: AsyncSession = Depends(get_session),
) -> List[ReservationRead]:
    rows = await ReservationService(session).reserve(payload)
    return [ReservationRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.get(
    "/reservations/order/{order_id}",
    response_model=List[ReservationRead],
    summary="Reservations of an order",
)
async def list_order_reservations(
    order_id: int, session: AsyncSession = Depends(get_session)
) -> List[ReservationRead]:
    rows = await ReservationService(session).list_for_order(order_id)
    return [ReservationRead.model_validate(r) for r in rows]


# PUBLIC_INTERFACE
@router.post(
    "/reservations/order/{order_id}/release",
    response_model=MessageResponse,
    summary="Release an order's reservations",
)
async def release_order_reservations(
    order_id: int, session: AsyncSession = Depends(get_session)
) -> MessageResponse:
    released = await ReservationService(session).release(order_id)
    return MessageResponse(message="Reservations released", details={"released": released})
