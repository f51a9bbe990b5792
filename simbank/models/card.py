"""
Card domain model.

Debit and credit cards issued against an account.  Card numbers are never
stored: only a cosmetic ``last4`` and an opaque ``pan_token``.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint
from sqlmodel import Field, SQLModel

from simbank.models.common import timestamp_field


class CardType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class CardStatus(str, Enum):
    """ACTIVE ⇄ BLOCKED, and either → CANCELED (terminal)."""

    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    CANCELED = "CANCELED"


class Card(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for cards.

    ``credit_limit_cents`` and ``available_credit_cents`` are only set for
    CREDIT cards.
    """

    __tablename__ = "cards"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("exp_month BETWEEN 1 AND 12", name="ck_cards_exp_month"),
        CheckConstraint("length(last4) = 4", name="ck_cards_last4_length"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True, ondelete="CASCADE")
    type: CardType
    is_virtual: bool = Field(default=False)
    brand: str = Field(default="VISA", max_length=32)
    holder_name: str = Field(max_length=255)
    last4: str = Field(max_length=4)
    pan_token: str = Field(unique=True, max_length=64)
    exp_month: int
    exp_year: int
    status: CardStatus = Field(default=CardStatus.ACTIVE)
    credit_limit_cents: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[arg-type]
    available_credit_cents: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[arg-type]
    created_at: datetime = timestamp_field(index=True)
    updated_at: datetime = timestamp_field()

    def __repr__(self) -> str:
        return f"<Card id={self.id} {self.type.value} ****{self.last4} {self.status.value}>"
