from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.deps import get_session
from printshop.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


# PUBLIC_INTERFACE
@router.get("", response_model=MessageResponse, summary="Liveness check")
def liveness() -> MessageResponse:
    """The process is up and serving requests."""
    return MessageResponse(message="Healthy")


# PUBLIC_INTERFACE
@router.get("/ready", response_model=MessageResponse, summary="Readiness check")
async def readiness(session: AsyncSession = Depends(get_session)) -> MessageResponse:
    """
    The database answers a trivial query.

    Raises:
        HTTPException: 503 Service Unavailable when the database cannot be reached.
    """
    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Readiness check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        )
    return MessageResponse(message="Ready")
