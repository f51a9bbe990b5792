"""
Investment repositories — product catalogue and positions.

Extends generic reads with the account-scoped queries behind
``GET /accounts/{id}/positions`` and the bulk cleanup of settled positions.
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update

from simbank.models.investment import InvestmentPosition, InvestmentProduct, PositionStatus
from simbank.repositories.base import BaseRepository


class ProductRepository(BaseRepository[InvestmentProduct]):
    """Concrete repository for :class:`InvestmentProduct` entries."""

    async def get_by_code(self, code: str) -> Optional[InvestmentProduct]:
        stmt = select(self.model).where(self.model.code == code)
        return await self._first(stmt)

    async def list_by_rate(self) -> List[InvestmentProduct]:
        """Whole catalogue, lowest per-minute rate first."""
        stmt = select(self.model).order_by(self.model.minute_rate_ppm.asc())
        return await self._scalars(stmt)


class PositionRepository(BaseRepository[InvestmentPosition]):
    """Concrete repository for :class:`InvestmentPosition` entities."""

    async def list_for_account(self, account_id: UUID) -> List[InvestmentPosition]:
        """
        Every position of an account, most recently opened first.

        Served by the ``(account_id, opened_at)`` index; products arrive with
        the rows through the ``selectin`` relationship.
        """
        stmt = (
            select(self.model)
            .where(self.model.account_id == account_id)
            .order_by(self.model.opened_at.desc())
        )
        return await self._scalars(stmt)

    async def delete_closed_for_account(self, account_id: UUID) -> int:
        """Stage a bulk delete of the account's CLOSED positions; returns the row count."""
        stmt = delete(self.model).where(
            self.model.account_id == account_id,
            self.model.status == PositionStatus.CLOSED,
        )
        result = await self._execute(stmt)
        return result.rowcount or 0

    async def close_if_active(
        self,
        position_id: UUID,
        seen_opened_at: datetime,
        redeemed_cents: int,
        closed_at: datetime,
    ) -> bool:
        """Stage the ACTIVE -> CLOSED transition of a full redemption."""
        return await self._update_if_active(
            position_id,
            seen_opened_at,
            status=PositionStatus.CLOSED,
            closed_at=closed_at,
            redeemed_cents=redeemed_cents,
        )

    async def reduce_if_active(
        self,
        position_id: UUID,
        seen_opened_at: datetime,
        principal_cents: int,
        reopened_at: datetime,
    ) -> bool:
        """Stage the shrink and accrual restart of a partial redemption."""
        return await self._update_if_active(
            position_id,
            seen_opened_at,
            principal_cents=principal_cents,
            opened_at=reopened_at,
        )

    async def _update_if_active(
        self, position_id: UUID, seen_opened_at: datetime, **values: Any
    ) -> bool:
        """
        Apply ``values`` only to a row that is still ACTIVE and still opened at
        ``seen_opened_at``.

        A concurrent redemption either closes the row or moves its
        ``opened_at``, so the loser matches nothing.  Returns ``False`` in
        that case; the caller must abandon its unit of work.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == position_id,
                self.model.status == PositionStatus.ACTIVE,
                self.model.opened_at == seen_opened_at,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt)
        return result.rowcount == 1
