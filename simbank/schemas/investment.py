"""
Pydantic schemas for the investment catalogue, positions and redemptions.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from simbank.core.money import format_cents
from simbank.models.investment import PositionStatus
from simbank.services.investment_service import PositionValuation, RedemptionQuote


class ProductResponse(BaseModel):
    id: UUID
    code: str
    name: str
    description: str
    minute_rate_ppm: int
    min_amount_cents: int
    liquidity_minutes: int

    model_config = ConfigDict(from_attributes=True)


class ProductSummary(BaseModel):
    """Product fields repeated on each listed position."""

    id: UUID
    code: str
    name: str
    minute_rate_ppm: int
    liquidity_minutes: int

    model_config = ConfigDict(from_attributes=True)


class BuyRequest(BaseModel):
    """Schema for ``POST /invest/positions``."""

    account_id: UUID
    product_id: UUID
    amount_cents: int = Field(..., gt=0, description="Principal in cents", examples=[10_000])


class PositionCreatedResponse(BaseModel):
    id: UUID
    account_id: UUID
    product_id: UUID
    principal_cents: int
    opened_at: datetime
    status: PositionStatus

    model_config = ConfigDict(from_attributes=True)


class PositionResponse(BaseModel):
    """A position valued at the moment of the request."""

    id: UUID
    status: PositionStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    principal_cents: int
    current_cents: int
    gain_cents: int
    product: ProductSummary

    @computed_field  # type: ignore[prop-decorator]
    @property
    def current_display(self) -> str:
        return format_cents(self.current_cents)

    @classmethod
    def from_valuation(cls, valuation: PositionValuation) -> "PositionResponse":
        position = valuation.position
        return cls(
            id=position.id,
            status=position.status,
            opened_at=position.opened_at,
            closed_at=position.closed_at,
            principal_cents=position.principal_cents,
            current_cents=valuation.current_cents,
            gain_cents=valuation.gain_cents,
            product=ProductSummary.model_validate(position.product),
        )


class RedeemRequest(BaseModel):
    """
    Schema for ``POST /invest/positions/{id}/redeem``.

    Omit ``amount_cents`` (or send zero or a negative amount) to redeem
    everything; larger amounts are capped to the current value.
    """

    account_id: UUID
    amount_cents: Optional[int] = Field(default=None, examples=[5_000])


class RedemptionResponse(BaseModel):
    kind: str = Field(..., examples=["PARTIAL"])
    requested_cents: int
    fee_cents: int
    net_cents: int
    remaining_current_cents: int
    remaining_principal_cents: int

    @classmethod
    def from_quote(cls, quote: RedemptionQuote) -> "RedemptionResponse":
        return cls(
            kind=quote.kind,
            requested_cents=quote.requested_cents,
            fee_cents=quote.fee_cents,
            net_cents=quote.net_cents,
            remaining_current_cents=quote.remaining_current_cents,
            remaining_principal_cents=quote.remaining_principal_cents,
        )
