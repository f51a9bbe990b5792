"""
User repository — data-access layer for the ``users`` table.

Adds the CPF look-up used by registration (duplicate check) and login.
"""

from typing import Optional

from sqlalchemy import select

from simbank.models.user import User
from simbank.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Concrete repository for :class:`User` entities."""

    async def get_by_cpf(self, cpf: str) -> Optional[User]:
        stmt = select(self.model).where(self.model.cpf == cpf)
        return await self._first(stmt)
