from __future__ import annotations

import logging
from datetime import timedelta
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.settings import get_app_settings
from printshop.db.session import get_async_session
from printshop.services.notifications import NotificationRuleEngine
from printshop.services.orders import OrderLifecycleService

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def get_session(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped AsyncSession; closed by get_async_session after the response."""
    yield session


# PUBLIC_INTERFACE
async def get_owner_id(x_user_id: Optional[str] = Header(default=None, alias="X-User-ID")) -> Optional[int]:
    """
    Owner whose orders the request operates on, taken from the X-User-ID header.

    Identity is resolved upstream; a missing header means orders with no owner.

    Raises:
        HTTPException: 400 Bad Request if the header is not an integer.
    """
    if x_user_id is None or x_user_id == "":
        return None
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-ID header must be an integer.",
        )


# PUBLIC_INTERFACE
def get_order_service(session: AsyncSession = Depends(get_session)) -> OrderLifecycleService:
    """Order lifecycle service bound to the request session."""
    return OrderLifecycleService(session, settings=get_app_settings())


# PUBLIC_INTERFACE
def get_notification_engine(session: AsyncSession = Depends(get_session)) -> NotificationRuleEngine:
    """Notification rule engine bound to the request session."""
    settings = get_app_settings()
    return NotificationRuleEngine(
        session,
        recent_window=timedelta(minutes=settings.NOTIFICATION_RECENT_WINDOW_MINUTES),
    )
