"""
Account API endpoints.

- GET   /accounts/{id}            — Account with its balance
- POST  /accounts/{id}/deposit    — Credit the account
- POST  /accounts/{id}/withdraw   — Debit the account
- POST  /accounts/{id}/transfer   — Move money to another account number
- GET   /accounts/{id}/statement  — Paged, filterable ledger entries
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from simbank.db.session import get_db
from simbank.models.account import Account
from simbank.models.ledger import LedgerEntry
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.ledger_repo import LedgerEntryRepository, StatementKind
from simbank.schemas.account import (
    AccountResponse,
    AmountRequest,
    LedgerEntryResponse,
    LedgerReceiptResponse,
    StatementItem,
    StatementResponse,
    TransferRequest,
)
from simbank.schemas.common import ERROR_RESPONSES
from simbank.services.ledger_service import (
    STATEMENT_DEFAULT_DAYS,
    STATEMENT_DEFAULT_LIMIT,
    STATEMENT_MAX_LIMIT,
    LedgerReceipt,
    LedgerService,
)

router = APIRouter()


def _get_ledger_service(db: AsyncSession = Depends(get_db)) -> LedgerService:
    """Build a LedgerService wired to the current request's DB session."""
    return LedgerService(AccountRepository(Account, db), LedgerEntryRepository(LedgerEntry, db))


def _receipt(receipt: LedgerReceipt) -> LedgerReceiptResponse:
    return LedgerReceiptResponse(
        account=AccountResponse.model_validate(receipt.account),
        transaction=LedgerEntryResponse.model_validate(receipt.entry),
    )


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get an account",
    responses=ERROR_RESPONSES,
)
async def get_account(
    account_id: UUID,
    service: LedgerService = Depends(_get_ledger_service),
) -> AccountResponse:
    return await service.get_account(account_id)


@router.post(
    "/{account_id}/deposit",
    response_model=LedgerReceiptResponse,
    status_code=201,
    summary="Deposit into an account",
    responses=ERROR_RESPONSES,
)
async def deposit(
    account_id: UUID,
    body: AmountRequest,
    service: LedgerService = Depends(_get_ledger_service),
) -> LedgerReceiptResponse:
    return _receipt(await service.deposit(account_id, body.amount_cents, body.note))


@router.post(
    "/{account_id}/withdraw",
    response_model=LedgerReceiptResponse,
    status_code=201,
    summary="Withdraw from an account",
    description="Fails with 422 when the balance does not cover the amount.",
    responses=ERROR_RESPONSES,
)
async def withdraw(
    account_id: UUID,
    body: AmountRequest,
    service: LedgerService = Depends(_get_ledger_service),
) -> LedgerReceiptResponse:
    return _receipt(await service.withdraw(account_id, body.amount_cents, body.note))


@router.post(
    "/{account_id}/transfer",
    response_model=LedgerReceiptResponse,
    status_code=201,
    summary="Transfer to another account",
    responses=ERROR_RESPONSES,
)
async def transfer(
    account_id: UUID,
    body: TransferRequest,
    service: LedgerService = Depends(_get_ledger_service),
) -> LedgerReceiptResponse:
    receipt = await service.transfer(
        account_id, body.to_account_number, body.amount_cents, body.note
    )
    return _receipt(receipt)


@router.get(
    "/{account_id}/statement",
    response_model=StatementResponse,
    summary="Account statement",
    description=(
        "Newest-first ledger entries.  Pass the returned ``next_cursor`` as "
        "``cursor`` to fetch the following page."
    ),
    responses=ERROR_RESPONSES,
)
async def statement(
    account_id: UUID,
    limit: int = Query(STATEMENT_DEFAULT_LIMIT, ge=1, le=STATEMENT_MAX_LIMIT),
    cursor: Optional[UUID] = Query(None, description="Id of the last entry already seen"),
    kind: str = Query(StatementKind.ALL, description="ALL, IN, OUT, DEPOSIT, WITHDRAW or TRANSFER"),
    since_days: int = Query(STATEMENT_DEFAULT_DAYS, ge=0, description="0 for all time"),
    q: Optional[str] = Query(None, max_length=140, description="Search note or account number"),
    service: LedgerService = Depends(_get_ledger_service),
) -> StatementResponse:
    page = await service.statement(
        account_id, limit=limit, cursor=cursor, kind=kind, since_days=since_days, q=q
    )
    return StatementResponse(
        items=[StatementItem.from_entry(entry) for entry in page.items],
        next_cursor=page.next_cursor,
    )
