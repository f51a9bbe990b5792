"""
Pydantic schemas for card issuance and updates.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from simbank.models.card import CardStatus, CardType
from simbank.services.card_service import CardAction


class CardCreate(BaseModel):
    """
    Schema for ``POST /accounts/{id}/cards``.

    ``credit_limit_cents`` is required (and must be positive) for CREDIT cards.
    """

    type: CardType
    holder_name: str = Field(..., min_length=1, max_length=255, examples=["MARIA SILVA"])
    is_virtual: bool = False
    brand: str = Field(default="VISA", max_length=32)
    credit_limit_cents: Optional[int] = Field(default=None, gt=0, examples=[150_000])

    @model_validator(mode="after")
    def require_limit_for_credit(self) -> "CardCreate":
        if self.type == CardType.CREDIT and self.credit_limit_cents is None:
            raise ValueError("credit_limit_cents is required for credit cards")
        return self


class CardUpdate(BaseModel):
    """Schema for ``PATCH /cards/{card_id}``; both fields are optional."""

    action: Optional[CardAction] = None
    credit_limit_cents: Optional[int] = Field(default=None, gt=0)


class CardResponse(BaseModel):
    id: UUID
    account_id: UUID
    type: CardType
    is_virtual: bool
    brand: str
    holder_name: str
    last4: str
    exp_month: int
    exp_year: int
    status: CardStatus
    credit_limit_cents: Optional[int] = None
    available_credit_cents: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
