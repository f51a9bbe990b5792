"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and add the
entity-specific queries.

Design rationale:
- Repositories never commit.  Writes are *staged* on the session and the
  service decides the transaction boundary with
  :func:`simbank.db.transaction.atomic`, so several repositories sharing one
  session commit (or roll back) together.
- Every query is routed through the global ``db_circuit_breaker``; once the
  database has failed repeatedly, calls fail fast with ``CircuitBreakerError``.
- **IntegrityError** is intentionally NOT caught here.  Each service maps it
  to its own domain error (duplicate CPF, duplicate Pix key, ...).
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable
from sqlmodel import SQLModel

from simbank.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # ── Internal helpers ──

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        """Route any async callable through the circuit breaker."""
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _execute(self, stmt: Executable) -> Any:
        return await self._execute_with_circuit_breaker(self.db.execute, stmt)

    async def _scalars(self, stmt: Executable) -> List[Any]:
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def _first(self, stmt: Executable) -> Optional[Any]:
        result = await self._execute(stmt)
        return result.scalars().first()

    # ── Reads ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""
        return await self._execute_with_circuit_breaker(self.db.get, self.model, id)

    # ── Staged writes (committed by the caller's unit of work) ──

    def stage(self, entity: ModelType) -> ModelType:
        """Add a new or modified entity to the current unit of work."""
        self.db.add(entity)
        return entity

    async def stage_delete(self, entity: ModelType) -> None:
        """Mark an entity for deletion in the current unit of work."""
        await self.db.delete(entity)

    async def flush(self) -> None:
        """Push staged writes to the database without committing."""
        await self._execute_with_circuit_breaker(self.db.flush)
