"""
Ledger entry domain model.

One row per money movement between accounts (or into / out of the bank for
deposits and withdrawals).  Persisted in the ``transactions`` table.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Index
from sqlmodel import Field, Relationship, SQLModel

from simbank.models.account import Account
from simbank.models.common import timestamp_field


class EntryKind(str, Enum):
    """Kinds of balance movement recorded in the ledger."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    TRANSFER = "TRANSFER"


class LedgerEntry(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for ledger entries.

    - DEPOSIT has only ``to_id``; WITHDRAW only ``from_id``; TRANSFER both.
    - ``(created_at, id)`` is indexed for the newest-first statement query.
    """

    __tablename__ = "transactions"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_transactions_created_id", "created_at", "id"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    kind: EntryKind
    amount_cents: int = Field(sa_type=BigInteger)  # type: ignore[arg-type]
    note: Optional[str] = Field(default=None, max_length=140)
    from_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="accounts.id", index=True, ondelete="CASCADE"
    )
    to_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="accounts.id", index=True, ondelete="CASCADE"
    )
    created_at: datetime = timestamp_field(index=True)

    # Counterparty accounts, eagerly loaded so statements can show numbers.
    from_account: Optional[Account] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "LedgerEntry.from_id", "lazy": "selectin"}
    )
    to_account: Optional[Account] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "LedgerEntry.to_id", "lazy": "selectin"}
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} {self.kind.value} {self.amount_cents} "
            f"from={self.from_id} to={self.to_id}>"
        )
