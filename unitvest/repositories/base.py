"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.

Unlike a request-per-write CRUD layer, repositories here never commit.
Crediting a balance, advancing a cycle and writing the ledger row must land
together, so the service opens the transaction with
:func:`unitvest.db.session.atomic` and every repository call inside it only
flushes.  **IntegrityError** is not caught here; the caller decides what a
constraint violation means (a duplicate accrual is a concurrency conflict,
not a 500).
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from unitvest.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic data access for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        The session whose transaction the repository participates in.

    Every database round trip is routed through ``db_circuit_breaker`` so an
    outage fails fast instead of queueing requests behind pool timeouts.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    async def add(self, obj_in: ModelType) -> ModelType:
        """Stage a new entity in the current transaction and flush it."""

        async def _add() -> ModelType:
            self.db.add(obj_in)
            await self.db.flush()
            return obj_in

        return await self._execute_with_circuit_breaker(_add)

    async def refresh(self, entity: ModelType) -> ModelType:
        """Reload ``entity`` from the database (after Core-level UPDATEs)."""

        async def _refresh() -> ModelType:
            await self.db.refresh(entity)
            return entity

        return await self._execute_with_circuit_breaker(_refresh)

    async def count(self, *criteria: Any) -> int:
        """Count rows matching optional ``criteria``."""

        async def _count() -> int:
            stmt = select(func.count()).select_from(self.model)
            if criteria:
                stmt = stmt.where(*criteria)
            result = await self.db.execute(stmt)
            return result.scalar_one()

        return await self._execute_with_circuit_breaker(_count)

    async def _scalars(self, stmt: Any) -> List[ModelType]:
        async def _run() -> List[ModelType]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_run)

    async def _rowcount(self, stmt: Any) -> int:
        async def _run() -> int:
            result = await self.db.execute(stmt)
            return result.rowcount

        return await self._execute_with_circuit_breaker(_run)
