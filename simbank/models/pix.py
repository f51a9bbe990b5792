"""
Pix domain models.

``PixKey`` maps a normalised key (CPF, e-mail, phone or random EVP) to the
account that receives transfers sent to it.  ``PixTransfer`` records each
send twice, once per direction, so either side can list its own history.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from simbank.models.common import timestamp_field


class PixKeyType(str, Enum):
    CPF = "CPF"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    EVP = "EVP"


class PixDirection(str, Enum):
    OUT = "OUT"
    IN = "IN"


class PixTransferStatus(str, Enum):
    COMPLETED = "COMPLETED"


class PixKey(SQLModel, table=True):
    """A key is globally unique per ``(type, value)``."""

    __tablename__ = "pix_keys"  # type: ignore[assignment]

    __table_args__ = (UniqueConstraint("type", "value", name="uq_pix_keys_type_value"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True, ondelete="CASCADE")
    type: PixKeyType
    value: str = Field(max_length=128)
    is_primary: bool = Field(default=False)
    created_at: datetime = timestamp_field()

    def __repr__(self) -> str:
        return f"<PixKey id={self.id} {self.type.value} primary={self.is_primary}>"


class PixTransfer(SQLModel, table=True):
    """One direction (OUT for the payer, IN for the payee) of a Pix send."""

    __tablename__ = "pix_transfers"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    end_to_end_id: str = Field(index=True, max_length=32)
    from_account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)
    to_account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)
    amount_cents: int = Field(sa_type=BigInteger)  # type: ignore[arg-type]
    description: str = Field(max_length=140)
    direction: PixDirection
    status: PixTransferStatus = Field(default=PixTransferStatus.COMPLETED)
    created_at: datetime = timestamp_field(index=True)
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
