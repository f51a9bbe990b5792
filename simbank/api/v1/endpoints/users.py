"""
User API endpoints.

- POST  /users/register   — Create a user and its account
- POST  /users/login      — Check CPF + password, return the profile
- GET   /users/{user_id}  — Current profile (user + account)
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from simbank.db.session import get_db
from simbank.models.account import Account
from simbank.models.user import User
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.user_repo import UserRepository
from simbank.schemas.common import ERROR_RESPONSES, ErrorResponse
from simbank.schemas.user import LoginRequest, ProfileResponse, RegisterRequest
from simbank.services.user_service import UserService

router = APIRouter()


def _get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    """Build a UserService wired to the current request's DB session."""
    return UserService(UserRepository(User, db), AccountRepository(Account, db))


@router.post(
    "/register",
    response_model=ProfileResponse,
    status_code=201,
    summary="Register a user",
    description="Creates the user and a zero-balance account in agency 0001.",
    responses={
        409: {"model": ErrorResponse, "description": "CPF already registered"},
        **ERROR_RESPONSES,
    },
)
async def register(
    body: RegisterRequest,
    service: UserService = Depends(_get_user_service),
) -> ProfileResponse:
    return await service.register(body.name, body.cpf, body.password)


@router.post(
    "/login",
    response_model=ProfileResponse,
    summary="Log in with CPF and password",
    responses={
        401: {"model": ErrorResponse, "description": "Wrong password"},
        **ERROR_RESPONSES,
    },
)
async def login(
    body: LoginRequest,
    service: UserService = Depends(_get_user_service),
) -> ProfileResponse:
    return await service.login(body.cpf, body.password)


@router.get(
    "/{user_id}",
    response_model=ProfileResponse,
    summary="Get a user's profile",
    responses={401: {"model": ErrorResponse, "description": "Unknown user"}},
)
async def me(
    user_id: UUID,
    service: UserService = Depends(_get_user_service),
) -> ProfileResponse:
    return await service.me(user_id)
