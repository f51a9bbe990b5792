"""
Pydantic schemas for Pix keys and transfers.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from simbank.core.money import format_cents
from simbank.models.pix import PixDirection, PixKeyType, PixTransferStatus


class PixKeyCreate(BaseModel):
    """
    Schema for ``POST /accounts/{id}/pix/keys``.

    ``value`` is ignored for EVP keys, which are generated by the server.
    """

    type: PixKeyType
    value: Optional[str] = Field(default=None, max_length=128, examples=["maria@example.com"])
    set_primary: bool = False


class PixKeyResponse(BaseModel):
    id: UUID
    account_id: UUID
    type: PixKeyType
    value: str
    is_primary: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PixSendRequest(BaseModel):
    """Schema for ``POST /accounts/{id}/pix/send``."""

    key_type: PixKeyType
    key: str = Field(..., min_length=1, max_length=128, examples=["12345678909"])
    amount_cents: int = Field(..., gt=0, examples=[2_500])
    note: Optional[str] = Field(default=None, max_length=140)


class PixSendResponse(BaseModel):
    end_to_end_id: str = Field(..., examples=["E2E-4f1c2a9b0d3e5f6a7b8c"])


class PixTransferResponse(BaseModel):
    id: UUID
    end_to_end_id: str
    from_account_id: UUID
    to_account_id: UUID
    amount_cents: int
    description: str
    direction: PixDirection
    status: PixTransferStatus
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def amount_display(self) -> str:
        return format_cents(self.amount_cents)
