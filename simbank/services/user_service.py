"""
User service — registration, login and profile look-up.

Registration creates the user and its account in one unit of work, so a user
without an account (or the reverse) can never be observed.
"""

import hashlib
import hmac
import logging
import random
import re
import secrets
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from simbank.core.exceptions import (
    AuthenticationFailed,
    ConflictException,
    NotFoundException,
    ValidationFailed,
)
from simbank.db.transaction import atomic
from simbank.models.account import DEFAULT_AGENCY, Account
from simbank.models.user import User
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_ACCOUNT_NUMBER_ATTEMPTS = 5
_REPEATED_DIGIT = re.compile(r"^(\d)\1{10}$")


@dataclass(frozen=True)
class UserProfile:
    user: User
    account: Account


def looks_like_cpf(digits: str) -> bool:
    """11 digits, not all the same.  Check digits are not verified."""
    return len(digits) == 11 and digits.isdigit() and not _REPEATED_DIGIT.match(digits)


def hash_password(password: str, salt: str) -> str:
    return hashlib.scrypt(password.encode(), salt=salt.encode(), n=16384, r=8, p=1).hex()


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password, salt), expected_hash)


def generate_account_number() -> str:
    """Six random digits plus a check digit (digit sum mod 10): ``NNNNNN-D``."""
    base = str(random.randint(100000, 999999))
    check = sum(int(d) for d in base) % 10
    return f"{base}-{check}"


class UserService:
    """Encapsulates user registration and authentication."""

    def __init__(self, user_repo: UserRepository, account_repo: AccountRepository):
        self._users = user_repo
        self._accounts = account_repo

    async def register(self, name: str, cpf: str, password: str) -> UserProfile:
        """
        Create a user and its zero-balance account.

        Raises :class:`ValidationFailed` for a short name, a CPF that does
        not look valid or a short password, and :class:`ConflictException`
        when the CPF is already registered.
        """
        name = (name or "").strip()
        digits = re.sub(r"\D", "", cpf or "")

        if len(name) < 2:
            raise ValidationFailed("Name must have at least 2 characters")
        if not looks_like_cpf(digits):
            raise ValidationFailed("Invalid CPF")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(
                f"Password must have at least {MIN_PASSWORD_LENGTH} characters"
            )

        if await self._users.get_by_cpf(digits):
            raise ConflictException("CPF is already registered")

        number = await self._free_account_number()
        salt = secrets.token_hex(16)
        user = User(
            name=name,
            cpf=digits,
            password_salt=salt,
            password_hash=hash_password(password, salt),
        )
        account = Account(owner_id=user.id, agency=DEFAULT_AGENCY, number=number)

        try:
            async with atomic(self._users.db):
                self._users.stage(user)
                await self._users.flush()
                self._accounts.stage(account)
        except IntegrityError as exc:
            logger.warning("IntegrityError registering user: %s", exc)
            raise ConflictException("CPF or account number is already registered")

        logger.info("Registered user %s with account %s", user.id, account.number)
        return UserProfile(user=user, account=account)

    async def login(self, cpf: str, password: str) -> UserProfile:
        digits = re.sub(r"\D", "", cpf or "")
        user = await self._users.get_by_cpf(digits)
        if not user:
            raise NotFoundException("User", digits)
        if not verify_password(password or "", user.password_salt, user.password_hash):
            logger.warning("Failed login for user %s", user.id)
            raise AuthenticationFailed("Invalid password")

        account = await self._accounts.get_by_owner(user.id)
        if not account:
            raise NotFoundException("Account", user.id)
        return UserProfile(user=user, account=account)

    async def me(self, user_id: UUID) -> UserProfile:
        user = await self._users.get(user_id)
        if not user:
            raise AuthenticationFailed("Unknown user")
        account = await self._accounts.get_by_owner(user.id)
        if not account:
            raise NotFoundException("Account", user.id)
        return UserProfile(user=user, account=account)

    async def _free_account_number(self) -> str:
        for _ in range(_ACCOUNT_NUMBER_ATTEMPTS):
            number = generate_account_number()
            if not await self._accounts.get_by_number(number):
                return number
        raise ConflictException("Could not allocate an account number, try again")
