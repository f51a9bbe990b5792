"""
Investment API endpoints.

- GET     /invest/products                  — Catalogue, lowest rate first
- POST    /invest/products/seed             — Upsert the demo catalogue
- POST    /invest/positions                 — Buy (open a position)
- GET     /accounts/{id}/positions          — Positions valued now
- POST    /invest/positions/{id}/redeem     — Full or partial redemption
- DELETE  /invest/positions/{id}            — Delete a CLOSED position
- POST    /accounts/{id}/positions/cleanup  — Delete every CLOSED position
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from simbank.db.session import get_db
from simbank.models.account import Account
from simbank.models.investment import InvestmentPosition, InvestmentProduct
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.investment_repo import PositionRepository, ProductRepository
from simbank.schemas.common import ERROR_RESPONSES, DeletedCount
from simbank.schemas.investment import (
    BuyRequest,
    PositionCreatedResponse,
    PositionResponse,
    ProductResponse,
    RedeemRequest,
    RedemptionResponse,
)
from simbank.services.investment_service import InvestmentService

router = APIRouter()


def _get_investment_service(db: AsyncSession = Depends(get_db)) -> InvestmentService:
    """
    Build an InvestmentService wired to the current request's DB session.

    All three repositories share the session, so a redemption's credit and
    position change commit together.
    """
    return InvestmentService(
        account_repo=AccountRepository(Account, db),
        product_repo=ProductRepository(InvestmentProduct, db),
        position_repo=PositionRepository(InvestmentPosition, db),
    )


@router.get(
    "/invest/products",
    response_model=List[ProductResponse],
    summary="List investment products",
)
async def list_products(
    service: InvestmentService = Depends(_get_investment_service),
) -> List[ProductResponse]:
    return await service.list_products()


@router.post(
    "/invest/products/seed",
    response_model=List[ProductResponse],
    summary="Seed the demo catalogue",
    description="Idempotent upsert of CDB-FLEX, CDB-PLUS and CDB-TURBO by code.",
)
async def seed_products(
    service: InvestmentService = Depends(_get_investment_service),
) -> List[ProductResponse]:
    return await service.seed_products()


@router.post(
    "/invest/positions",
    response_model=PositionCreatedResponse,
    status_code=201,
    summary="Buy an investment product",
    description=(
        "Debits the account and opens an ACTIVE position.  The product "
        "minimum is checked before the balance."
    ),
    responses=ERROR_RESPONSES,
)
async def buy(
    body: BuyRequest,
    service: InvestmentService = Depends(_get_investment_service),
) -> PositionCreatedResponse:
    return await service.buy(body.account_id, body.product_id, body.amount_cents)


@router.get(
    "/accounts/{account_id}/positions",
    response_model=List[PositionResponse],
    summary="List positions",
    description="Most recently opened first; ACTIVE positions are valued at the current minute.",
    responses=ERROR_RESPONSES,
)
async def list_positions(
    account_id: UUID,
    service: InvestmentService = Depends(_get_investment_service),
) -> List[PositionResponse]:
    valuations = await service.list_positions(account_id)
    return [PositionResponse.from_valuation(v) for v in valuations]


@router.post(
    "/invest/positions/{position_id}/redeem",
    response_model=RedemptionResponse,
    summary="Redeem a position",
    description=(
        "Redeems ``amount_cents`` (capped to the current value) or everything "
        "when omitted, zero or negative.  A fee is charged on the redeemed "
        "share of the gain."
    ),
    responses=ERROR_RESPONSES,
)
async def redeem(
    position_id: UUID,
    body: RedeemRequest,
    service: InvestmentService = Depends(_get_investment_service),
) -> RedemptionResponse:
    quote = await service.redeem(position_id, body.account_id, body.amount_cents)
    return RedemptionResponse.from_quote(quote)


@router.delete(
    "/invest/positions/{position_id}",
    status_code=204,
    summary="Delete a closed position",
    responses=ERROR_RESPONSES,
)
async def delete_position(
    position_id: UUID,
    account_id: UUID = Query(..., description="Owning account"),
    service: InvestmentService = Depends(_get_investment_service),
) -> Response:
    await service.delete_position(position_id, account_id)
    return Response(status_code=204)


@router.post(
    "/accounts/{account_id}/positions/cleanup",
    response_model=DeletedCount,
    summary="Delete every closed position of an account",
    responses=ERROR_RESPONSES,
)
async def cleanup_closed(
    account_id: UUID,
    service: InvestmentService = Depends(_get_investment_service),
) -> DeletedCount:
    return DeletedCount(deleted=await service.cleanup_closed(account_id))
