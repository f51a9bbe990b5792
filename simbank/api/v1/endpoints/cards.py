"""
Card API endpoints.

- GET    /accounts/{id}/cards  — List an account's cards
- POST   /accounts/{id}/cards  — Issue a card
- GET    /cards/{card_id}      — Retrieve a card
- PATCH  /cards/{card_id}      — Block / unblock / cancel, or change the limit
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from simbank.db.session import get_db
from simbank.models.account import Account
from simbank.models.card import Card
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.card_repo import CardRepository
from simbank.schemas.card import CardCreate, CardResponse, CardUpdate
from simbank.schemas.common import ERROR_RESPONSES
from simbank.services.card_service import CardService

router = APIRouter()


def _get_card_service(db: AsyncSession = Depends(get_db)) -> CardService:
    """Build a CardService wired to the current request's DB session."""
    return CardService(CardRepository(Card, db), AccountRepository(Account, db))


@router.get(
    "/accounts/{account_id}/cards",
    response_model=List[CardResponse],
    summary="List cards",
    responses=ERROR_RESPONSES,
)
async def list_cards(
    account_id: UUID,
    service: CardService = Depends(_get_card_service),
) -> List[CardResponse]:
    return await service.list_cards(account_id)


@router.post(
    "/accounts/{account_id}/cards",
    response_model=CardResponse,
    status_code=201,
    summary="Issue a card",
    responses=ERROR_RESPONSES,
)
async def create_card(
    account_id: UUID,
    body: CardCreate,
    service: CardService = Depends(_get_card_service),
) -> CardResponse:
    return await service.create_card(
        account_id,
        body.type,
        body.holder_name,
        is_virtual=body.is_virtual,
        brand=body.brand,
        credit_limit_cents=body.credit_limit_cents,
    )


@router.get(
    "/cards/{card_id}",
    response_model=CardResponse,
    summary="Get a card",
    responses=ERROR_RESPONSES,
)
async def get_card(
    card_id: UUID,
    service: CardService = Depends(_get_card_service),
) -> CardResponse:
    return await service.get_card(card_id)


@router.patch(
    "/cards/{card_id}",
    response_model=CardResponse,
    summary="Update a card",
    description="Status actions follow ACTIVE ⇄ BLOCKED → CANCELED.",
    responses=ERROR_RESPONSES,
)
async def update_card(
    card_id: UUID,
    body: CardUpdate,
    service: CardService = Depends(_get_card_service),
) -> CardResponse:
    return await service.update_card(card_id, body.action, body.credit_limit_cents)
