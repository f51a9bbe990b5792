"""
Account domain model.

Holds the balance every money movement acts upon.  ``balance_cents`` is only
ever changed through :class:`~simbank.repositories.account_repo.AccountRepository`
``credit`` / ``debit``, which issue atomic in-database increments.
"""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger
from sqlmodel import Field, SQLModel

from simbank.models.common import timestamp_field

DEFAULT_AGENCY = "0001"


class Account(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for accounts.

    Balance non-negativity is guaranteed by the conditional decrement in
    ``AccountRepository.debit`` rather than a CHECK constraint, so a losing
    concurrent debit is reported as insufficient funds instead of an
    integrity error.
    """

    __tablename__ = "accounts"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(foreign_key="users.id", unique=True, index=True)
    agency: str = Field(default=DEFAULT_AGENCY, max_length=4)
    number: str = Field(unique=True, index=True, max_length=8)
    balance_cents: int = Field(default=0, sa_type=BigInteger)  # type: ignore[arg-type]
    created_at: datetime = timestamp_field()

    def __repr__(self) -> str:
        return f"<Account id={self.id} {self.agency}/{self.number} balance={self.balance_cents}>"
