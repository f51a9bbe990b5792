"""
Pix service — key registry and key-addressed transfers.

A send resolves the destination account from a ``(type, value)`` key, then
moves the money exactly like an account transfer and additionally records
the payer's OUT row and the payee's IN row under one end-to-end id.
"""

import logging
import re
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.exc import IntegrityError

from simbank.core.exceptions import (
    BusinessRuleViolation,
    ConflictException,
    InsufficientFunds,
    NotFoundException,
    ValidationFailed,
)
from simbank.db.transaction import atomic
from simbank.models.account import Account
from simbank.models.common import utcnow
from simbank.models.ledger import EntryKind, LedgerEntry
from simbank.models.pix import PixDirection, PixKey, PixKeyType, PixTransfer
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.ledger_repo import LedgerEntryRepository
from simbank.repositories.pix_repo import PixKeyRepository, PixTransferRepository

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_EVP_PATTERN = re.compile(r"^[a-z0-9-]{10,64}$")
_email_adapter = TypeAdapter(EmailStr)


def only_digits(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def normalize_pix_key(key_type: PixKeyType, raw: str) -> str:
    """
    Return the canonical form of a key or raise :class:`ValidationFailed`.

    - CPF: digits only, exactly 11 (no check-digit validation).
    - PHONE: digits only, area code included, 10 or 11 digits.
    - EMAIL: lower-cased, must be a deliverable-looking address.
    - EVP: lower-cased, 10 to 64 of ``[a-z0-9-]``.
    """
    value = (raw or "").strip()

    if key_type == PixKeyType.CPF:
        digits = only_digits(value)
        if len(digits) != 11:
            raise ValidationFailed("Invalid CPF key (use 11 digits)")
        return digits

    if key_type == PixKeyType.PHONE:
        digits = only_digits(value)
        if not 10 <= len(digits) <= 11:
            raise ValidationFailed("Invalid phone key (include the area code)")
        return digits

    if key_type == PixKeyType.EMAIL:
        email = value.lower()
        try:
            _email_adapter.validate_python(email)
        except ValidationError:
            raise ValidationFailed("Invalid e-mail key") from None
        return email

    if key_type == PixKeyType.EVP:
        evp = value.lower()
        if not _EVP_PATTERN.match(evp):
            raise ValidationFailed("Invalid random key")
        return evp

    raise ValidationFailed(f"Unsupported key type '{key_type}'")


def mask_key(key_type: PixKeyType, value: str) -> str:
    """Partially hide a normalised key for use in transfer descriptions."""
    if key_type == PixKeyType.CPF and len(value) == 11:
        return f"{value[:3]}*****{value[-3:]}"
    if key_type == PixKeyType.PHONE and len(value) == 11:
        return f"({value[:2]})*****-{value[-2:]}"
    if key_type == PixKeyType.EMAIL:
        user, _, domain = value.partition("@")
        if not user or not domain:
            return value
        return f"{user[0]}***@{domain}"
    if key_type == PixKeyType.EVP:
        return f"{value[:6]}...{value[-4:]}"
    return value


def generate_end_to_end_id() -> str:
    return "E2E-" + uuid.uuid4().hex[:20]


class PixService:
    """Encapsulates Pix key management and Pix sends."""

    def __init__(
        self,
        account_repo: AccountRepository,
        key_repo: PixKeyRepository,
        transfer_repo: PixTransferRepository,
        entry_repo: LedgerEntryRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts = account_repo
        self._keys = key_repo
        self._transfers = transfer_repo
        self._entries = entry_repo
        self._clock = clock

    # ── Keys ──

    async def list_keys(self, account_id: UUID) -> List[PixKey]:
        await self._get_account(account_id)
        return await self._keys.list_for_account(account_id)

    async def create_key(
        self,
        account_id: UUID,
        key_type: PixKeyType,
        value: Optional[str] = None,
        set_primary: bool = False,
    ) -> PixKey:
        """
        Register a key for the account.

        EVP keys are always generated here; any supplied value is ignored.
        Keys are unique per ``(type, value)`` across every account → 409.
        """
        await self._get_account(account_id)

        if key_type == PixKeyType.EVP:
            normalized = str(uuid.uuid4())
        else:
            normalized = normalize_pix_key(key_type, value or "")

        if await self._keys.get_by_type_value(key_type, normalized):
            raise ConflictException("Pix key is already registered")

        key = PixKey(
            account_id=account_id,
            type=key_type,
            value=normalized,
            is_primary=set_primary,
            created_at=self._clock(),
        )
        try:
            async with atomic(self._keys.db):
                if set_primary:
                    await self._keys.clear_primary(account_id)
                self._keys.stage(key)
        except IntegrityError as exc:
            # Concurrent registration of the same key won the race.
            logger.warning("IntegrityError creating pix key for %s: %s", account_id, exc)
            raise ConflictException("Pix key is already registered")

        logger.info("Registered %s pix key %s for account %s", key_type.value, key.id, account_id)
        return key

    async def delete_key(self, account_id: UUID, key_id: UUID) -> None:
        key = await self._get_owned_key(account_id, key_id)
        async with atomic(self._keys.db):
            await self._keys.stage_delete(key)
        logger.info("Deleted pix key %s of account %s", key_id, account_id)

    async def set_primary(self, account_id: UUID, key_id: UUID) -> PixKey:
        key = await self._get_owned_key(account_id, key_id)
        async with atomic(self._keys.db):
            await self._keys.clear_primary(account_id)
            key.is_primary = True
            self._keys.stage(key)
        logger.info("Pix key %s is now primary for account %s", key_id, account_id)
        return key

    # ── Transfers ──

    async def list_transfers(
        self, account_id: UUID, direction: Optional[PixDirection] = None
    ) -> List[PixTransfer]:
        await self._get_account(account_id)
        return await self._transfers.list_for_account(account_id, direction)

    async def send(
        self,
        from_account_id: UUID,
        key_type: PixKeyType,
        key: str,
        amount_cents: int,
        note: Optional[str] = None,
    ) -> str:
        """
        Send ``amount_cents`` to the account owning the key.

        Validation sequence:
        1. The key must normalise → 422.
        2. The key and the source account must exist → 404.
        3. The destination must differ from the source → 422.
        4. The source balance must cover the amount → 422.

        Returns the end-to-end id shared by the OUT and IN records.
        """
        if amount_cents <= 0:
            raise ValidationFailed("Amount must be greater than zero")

        normalized = normalize_pix_key(key_type, key)
        destination = await self._keys.get_by_type_value(key_type, normalized)
        if not destination:
            raise NotFoundException("PixKey", f"{key_type.value}:{mask_key(key_type, normalized)}")

        source = await self._get_account(from_account_id)
        if destination.account_id == source.id:
            raise BusinessRuleViolation("Cannot send Pix to the same account")
        if source.balance_cents < amount_cents:
            raise InsufficientFunds(from_account_id, amount_cents)

        clipped = (note or "").strip()[:140]
        description = clipped or f"PIX {key_type.value} • {mask_key(key_type, normalized)}"
        end_to_end_id = generate_end_to_end_id()
        now = self._clock()
        to_id = destination.account_id

        async with atomic(self._accounts.db):
            if not await self._accounts.debit(source.id, amount_cents):
                raise InsufficientFunds(from_account_id, amount_cents)
            if not await self._accounts.credit(to_id, amount_cents):
                raise NotFoundException("Account", to_id)
            self._entries.stage(
                LedgerEntry(
                    kind=EntryKind.TRANSFER,
                    amount_cents=amount_cents,
                    note=description,
                    from_id=source.id,
                    to_id=to_id,
                    created_at=now,
                )
            )
            for direction in (PixDirection.OUT, PixDirection.IN):
                self._transfers.stage(
                    PixTransfer(
                        end_to_end_id=end_to_end_id,
                        from_account_id=source.id,
                        to_account_id=to_id,
                        amount_cents=amount_cents,
                        description=description,
                        direction=direction,
                        created_at=now,
                        completed_at=now,
                    )
                )

        logger.info(
            "Pix %s: %d cents from %s to %s",
            end_to_end_id,
            amount_cents,
            source.id,
            to_id,
            extra={"account_id": str(source.id), "amount_cents": amount_cents},
        )
        return end_to_end_id

    # ── Helpers ──

    async def _get_account(self, account_id: UUID) -> Account:
        account = await self._accounts.get(account_id)
        if not account:
            raise NotFoundException("Account", account_id)
        return account

    async def _get_owned_key(self, account_id: UUID, key_id: UUID) -> PixKey:
        key = await self._keys.get_for_account(key_id, account_id)
        if not key:
            raise NotFoundException("PixKey", key_id)
        return key
