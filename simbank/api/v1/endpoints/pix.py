"""
Pix API endpoints (all scoped to the sending / owning account).

- GET     /accounts/{id}/pix/keys                   — List keys
- POST    /accounts/{id}/pix/keys                   — Register a key
- DELETE  /accounts/{id}/pix/keys/{key_id}          — Remove a key
- POST    /accounts/{id}/pix/keys/{key_id}/primary  — Make a key primary
- POST    /accounts/{id}/pix/send                   — Send to a key
- GET     /accounts/{id}/pix/transfers              — Sent / received history
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from simbank.db.session import get_db
from simbank.models.account import Account
from simbank.models.ledger import LedgerEntry
from simbank.models.pix import PixDirection, PixKey, PixTransfer
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.ledger_repo import LedgerEntryRepository
from simbank.repositories.pix_repo import PixKeyRepository, PixTransferRepository
from simbank.schemas.common import ERROR_RESPONSES, ErrorResponse
from simbank.schemas.pix import (
    PixKeyCreate,
    PixKeyResponse,
    PixSendRequest,
    PixSendResponse,
    PixTransferResponse,
)
from simbank.services.pix_service import PixService

router = APIRouter()


def _get_pix_service(db: AsyncSession = Depends(get_db)) -> PixService:
    """Build a PixService wired to the current request's DB session."""
    return PixService(
        account_repo=AccountRepository(Account, db),
        key_repo=PixKeyRepository(PixKey, db),
        transfer_repo=PixTransferRepository(PixTransfer, db),
        entry_repo=LedgerEntryRepository(LedgerEntry, db),
    )


@router.get(
    "/accounts/{account_id}/pix/keys",
    response_model=List[PixKeyResponse],
    summary="List Pix keys",
    description="Primary key first, then newest first.",
    responses=ERROR_RESPONSES,
)
async def list_keys(
    account_id: UUID,
    service: PixService = Depends(_get_pix_service),
) -> List[PixKeyResponse]:
    return await service.list_keys(account_id)


@router.post(
    "/accounts/{account_id}/pix/keys",
    response_model=PixKeyResponse,
    status_code=201,
    summary="Register a Pix key",
    responses={
        409: {"model": ErrorResponse, "description": "Key already registered"},
        **ERROR_RESPONSES,
    },
)
async def create_key(
    account_id: UUID,
    body: PixKeyCreate,
    service: PixService = Depends(_get_pix_service),
) -> PixKeyResponse:
    return await service.create_key(account_id, body.type, body.value, body.set_primary)


@router.delete(
    "/accounts/{account_id}/pix/keys/{key_id}",
    status_code=204,
    summary="Remove a Pix key",
    responses=ERROR_RESPONSES,
)
async def delete_key(
    account_id: UUID,
    key_id: UUID,
    service: PixService = Depends(_get_pix_service),
) -> Response:
    await service.delete_key(account_id, key_id)
    return Response(status_code=204)


@router.post(
    "/accounts/{account_id}/pix/keys/{key_id}/primary",
    response_model=PixKeyResponse,
    summary="Make a Pix key the primary one",
    responses=ERROR_RESPONSES,
)
async def set_primary(
    account_id: UUID,
    key_id: UUID,
    service: PixService = Depends(_get_pix_service),
) -> PixKeyResponse:
    return await service.set_primary(account_id, key_id)


@router.post(
    "/accounts/{account_id}/pix/send",
    response_model=PixSendResponse,
    status_code=201,
    summary="Send a Pix",
    description="Resolves the destination account from the key and moves the money.",
    responses=ERROR_RESPONSES,
)
async def send(
    account_id: UUID,
    body: PixSendRequest,
    service: PixService = Depends(_get_pix_service),
) -> PixSendResponse:
    end_to_end_id = await service.send(
        account_id, body.key_type, body.key, body.amount_cents, body.note
    )
    return PixSendResponse(end_to_end_id=end_to_end_id)


@router.get(
    "/accounts/{account_id}/pix/transfers",
    response_model=List[PixTransferResponse],
    summary="List Pix transfers",
    responses=ERROR_RESPONSES,
)
async def list_transfers(
    account_id: UUID,
    direction: Optional[PixDirection] = Query(None, description="OUT or IN; both when omitted"),
    service: PixService = Depends(_get_pix_service),
) -> List[PixTransferResponse]:
    return await service.list_transfers(account_id, direction)
