from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.errors import ConsistencyError, OrderEngineError

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services should keep business logic and orchestration, delegating data access
    to repositories.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """
        Run a block as one unit of work on the service's session.

        Commits when the block completes. On any failure the session is rolled
        back; engine errors are re-raised as they are, anything else is
        surfaced as a ConsistencyError chained to the original exception.
        """
        try:
            yield self.session
            await self.session.commit()
        except OrderEngineError:
            await self.session.rollback()
            raise
        except Exception as exc:
            await self.session.rollback()
            logger.exception("%s failed, transaction rolled back", operation)
            raise ConsistencyError(f"{operation} failed: {exc}") from exc
