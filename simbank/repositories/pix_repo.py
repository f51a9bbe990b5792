"""
Pix repositories — keys and the per-direction transfer records.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select, update

from simbank.models.pix import PixDirection, PixKey, PixKeyType, PixTransfer
from simbank.repositories.base import BaseRepository


class PixKeyRepository(BaseRepository[PixKey]):
    """Concrete repository for :class:`PixKey` entities."""

    async def get_by_type_value(
        self, key_type: PixKeyType, value: str
    ) -> Optional[PixKey]:
        stmt = select(self.model).where(
            self.model.type == key_type, self.model.value == value
        )
        return await self._first(stmt)

    async def get_for_account(self, key_id: UUID, account_id: UUID) -> Optional[PixKey]:
        """Fetch a key only if it belongs to ``account_id``."""
        stmt = select(self.model).where(
            self.model.id == key_id, self.model.account_id == account_id
        )
        return await self._first(stmt)

    async def list_for_account(self, account_id: UUID) -> List[PixKey]:
        """Primary key first, then newest first."""
        stmt = (
            select(self.model)
            .where(self.model.account_id == account_id)
            .order_by(self.model.is_primary.desc(), self.model.created_at.desc())
        )
        return await self._scalars(stmt)

    async def clear_primary(self, account_id: UUID) -> None:
        """Stage ``is_primary = false`` for every key of the account."""
        stmt = (
            update(self.model)
            .where(self.model.account_id == account_id, self.model.is_primary.is_(True))
            .values(is_primary=False)
        )
        await self._execute(stmt)


class PixTransferRepository(BaseRepository[PixTransfer]):
    """Concrete repository for :class:`PixTransfer` rows."""

    async def list_for_account(
        self,
        account_id: UUID,
        direction: Optional[PixDirection] = None,
        limit: int = 50,
    ) -> List[PixTransfer]:
        """
        Transfers as seen by ``account_id``, newest first.

        OUT rows belong to the payer and IN rows to the payee, so each
        account only ever sees its own side of a send.
        """
        sent = and_(
            self.model.direction == PixDirection.OUT,
            self.model.from_account_id == account_id,
        )
        received = and_(
            self.model.direction == PixDirection.IN,
            self.model.to_account_id == account_id,
        )
        if direction == PixDirection.OUT:
            condition = sent
        elif direction == PixDirection.IN:
            condition = received
        else:
            condition = or_(sent, received)

        stmt = (
            select(self.model)
            .where(condition)
            .order_by(self.model.created_at.desc())
            .limit(limit)
        )
        return await self._scalars(stmt)
