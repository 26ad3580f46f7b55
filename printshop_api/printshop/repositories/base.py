from __future__ import annotations

from typing import Any, Iterable, List, Optional

from sqlalchemy import Executable
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Query helpers over a shared AsyncSession.

    Repositories stage and flush only; commit and rollback belong to the
    service that owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable) -> List[Any]:
        """First column of every row, materialized."""
        result = await self.session.execute(statement)
        return list(result.scalars())

    async def one_or_none(self, statement: Executable) -> Optional[Any]:
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def add(self, entity: Any) -> None:
        self.session.add(entity)

    async def add_all(self, entities: Iterable[Any]) -> None:
        self.session.add_all(list(entities))

    async def flush(self) -> None:
        """Push pending rows so generated ids are assigned."""
        await self.session.flush()
