"""Card repository — data-access layer for the ``cards`` table."""

from typing import List
from uuid import UUID

from sqlalchemy import select

from simbank.models.card import Card
from simbank.repositories.base import BaseRepository


class CardRepository(BaseRepository[Card]):
    """Concrete repository for :class:`Card` entities."""

    async def list_for_account(self, account_id: UUID) -> List[Card]:
        """All cards of an account, newest first."""
        stmt = (
            select(self.model)
            .where(self.model.account_id == account_id)
            .order_by(self.model.created_at.desc())
        )
        return await self._scalars(stmt)
