"""
Pydantic schemas for registration, login and the user profile.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from simbank.schemas.account import AccountResponse


class RegisterRequest(BaseModel):
    """
    Schema for ``POST /users/register``.

    Punctuation in ``cpf`` is accepted and stripped by the service.
    """

    name: str = Field(..., max_length=255, examples=["Maria Silva"])
    cpf: str = Field(..., max_length=32, examples=["123.456.789-09"])
    password: str = Field(..., max_length=128, examples=["s3cret!"])


class LoginRequest(BaseModel):
    cpf: str = Field(..., max_length=32, examples=["12345678909"])
    password: str = Field(..., max_length=128)


class UserResponse(BaseModel):
    id: UUID
    name: str
    cpf: str

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """A user and the account they own."""

    user: UserResponse
    account: AccountResponse

    model_config = ConfigDict(from_attributes=True)
