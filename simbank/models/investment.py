"""
Investment domain models.

``InvestmentProduct`` is a catalogue entry (seeded, read-only afterwards).
``InvestmentPosition`` is one purchase of a product by an account; it accrues
value from ``opened_at`` until it is redeemed.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

from simbank.models.common import timestamp_field, utcnow


class PositionStatus(str, Enum):
    """ACTIVE positions accrue; CLOSED ones are settled and only await deletion."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class InvestmentProduct(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for the product catalogue.

    ``minute_rate_ppm`` is the per-minute interest rate in parts-per-million;
    ``liquidity_minutes`` is how long a position must be held before it can
    be redeemed.
    """

    __tablename__ = "investment_products"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("min_amount_cents >= 0", name="ck_products_min_amount"),
        CheckConstraint("liquidity_minutes >= 0", name="ck_products_liquidity"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=32)
    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1024)
    minute_rate_ppm: int = Field(index=True)
    min_amount_cents: int = Field(sa_type=BigInteger)  # type: ignore[arg-type]
    liquidity_minutes: int = Field(default=0)

    def __repr__(self) -> str:
        return f"<InvestmentProduct {self.code} rate={self.minute_rate_ppm}ppm/min>"


class InvestmentPosition(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investment positions.

    Lifecycle invariants (kept by ``InvestmentService``):
    - ACTIVE ⇒ ``principal_cents > 0`` and ``closed_at`` / ``redeemed_cents`` unset.
    - CLOSED ⇒ ``closed_at`` and ``redeemed_cents`` set; row is then only deleted.
    - A partial redemption rewrites ``principal_cents`` and ``opened_at``.
    """

    __tablename__ = "investment_positions"  # type: ignore[assignment]

    # Covers the listing query: WHERE account_id = ? ORDER BY opened_at DESC
    __table_args__ = (
        Index("ix_positions_account_opened", "account_id", "opened_at"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True, ondelete="CASCADE")
    product_id: uuid.UUID = Field(
        foreign_key="investment_products.id", ondelete="RESTRICT"
    )
    principal_cents: int = Field(sa_type=BigInteger)  # type: ignore[arg-type]
    opened_at: datetime = timestamp_field()
    status: PositionStatus = Field(default=PositionStatus.ACTIVE, index=True)
    closed_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    redeemed_cents: Optional[int] = Field(default=None, sa_type=BigInteger)  # type: ignore[arg-type]

    # Loaded together with the position so accrual never triggers lazy I/O.
    product: Optional[InvestmentProduct] = Relationship(
        sa_relationship_kwargs={"lazy": "selectin"}
    )

    def close(self, redeemed_cents: int, now: Optional[datetime] = None) -> None:
        """Settle the position after a full redemption of ``redeemed_cents`` (gross)."""
        self.status = PositionStatus.CLOSED
        self.closed_at = now or utcnow()
        self.redeemed_cents = redeemed_cents

    def reopen(self, principal_cents: int, now: Optional[datetime] = None) -> None:
        """Restart accrual from ``principal_cents`` after a partial redemption."""
        self.principal_cents = principal_cents
        self.opened_at = now or utcnow()

    def __repr__(self) -> str:
        return (
            f"<InvestmentPosition id={self.id} account={self.account_id} "
            f"{self.status.value} principal={self.principal_cents}>"
        )
