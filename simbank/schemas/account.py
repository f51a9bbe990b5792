"""
Pydantic schemas for accounts, balance commands and statements.

Amounts travel as integer cents; ``*_display`` fields are read-only
renderings for people.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from simbank.core.money import format_cents
from simbank.models.ledger import EntryKind


class AmountRequest(BaseModel):
    """Body of ``POST /accounts/{id}/deposit`` and ``/withdraw``."""

    amount_cents: int = Field(
        ...,
        gt=0,
        description="Amount in cents (must be positive)",
        examples=[10_000],
    )
    note: Optional[str] = Field(default=None, max_length=140, examples=["Salary"])


class TransferRequest(AmountRequest):
    """Body of ``POST /accounts/{id}/transfer``."""

    to_account_number: str = Field(
        ...,
        min_length=1,
        max_length=8,
        description="Destination account number (``NNNNNN-D``)",
        examples=["123456-1"],
    )


class AccountResponse(BaseModel):
    id: UUID
    owner_id: UUID
    agency: str
    number: str
    balance_cents: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def balance_display(self) -> str:
        return format_cents(self.balance_cents)


class LedgerEntryResponse(BaseModel):
    id: UUID
    kind: EntryKind
    amount_cents: int
    note: Optional[str] = None
    from_id: Optional[UUID] = None
    to_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def amount_display(self) -> str:
        return format_cents(self.amount_cents)


class LedgerReceiptResponse(BaseModel):
    """Account after the command together with the entry recording it."""

    account: AccountResponse
    transaction: LedgerEntryResponse


class StatementItem(LedgerEntryResponse):
    """A ledger entry with both counterparties' account numbers."""

    from_number: Optional[str] = None
    to_number: Optional[str] = None

    @classmethod
    def from_entry(cls, entry) -> "StatementItem":
        item = cls.model_validate(entry)
        item.from_number = entry.from_account.number if entry.from_account else None
        item.to_number = entry.to_account.number if entry.to_account else None
        return item


class StatementResponse(BaseModel):
    items: List[StatementItem]
    next_cursor: Optional[UUID] = Field(
        default=None,
        description="Pass as ``cursor`` to fetch the next page; null on the last page",
    )
