"""
Account repository — data-access layer for the ``accounts`` table.

Balance changes are issued as single ``UPDATE`` statements that increment or
decrement the column inside the database, so two concurrent commands on the
same account cannot lose each other's update.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from simbank.models.account import Account
from simbank.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Concrete repository for :class:`Account` entities."""

    async def get_by_owner(self, owner_id: UUID) -> Optional[Account]:
        stmt = select(self.model).where(self.model.owner_id == owner_id)
        return await self._first(stmt)

    async def get_by_number(self, number: str) -> Optional[Account]:
        stmt = select(self.model).where(self.model.number == number)
        return await self._first(stmt)

    async def credit(self, account_id: UUID, amount_cents: int) -> bool:
        """
        Stage ``balance += amount_cents``.

        Returns ``False`` when the account does not exist.
        """
        stmt = (
            update(self.model)
            .where(self.model.id == account_id)
            .values(balance_cents=self.model.balance_cents + amount_cents)
        )
        result = await self._execute(stmt)
        return result.rowcount == 1

    async def debit(self, account_id: UUID, amount_cents: int) -> bool:
        """
        Stage ``balance -= amount_cents`` only if the balance covers it.

        The balance check is part of the ``WHERE`` clause, so it is evaluated
        against the row the database is about to change.  Returns ``False``
        when no row matched (missing account or insufficient balance).
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == account_id,
                self.model.balance_cents >= amount_cents,
            )
            .values(balance_cents=self.model.balance_cents - amount_cents)
        )
        result = await self._execute(stmt)
        return result.rowcount == 1

    async def reload(self, account: Account) -> Account:
        """Re-read an account's columns (e.g. the balance after a commit)."""
        await self._execute_with_circuit_breaker(self.db.refresh, account)
        return account
