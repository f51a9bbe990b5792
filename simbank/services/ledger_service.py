"""
Ledger service — deposits, withdrawals, transfers and the account statement.

Every command changes balances through the repository's in-database
``credit`` / ``debit`` and records exactly one ledger entry, all inside one
:func:`~simbank.db.transaction.atomic` block.  A debit the balance cannot
cover aborts the whole block.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from simbank.core.exceptions import (
    BusinessRuleViolation,
    InsufficientFunds,
    NotFoundException,
    ValidationFailed,
)
from simbank.db.transaction import atomic
from simbank.models.account import Account
from simbank.models.common import utcnow
from simbank.models.ledger import EntryKind, LedgerEntry
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.ledger_repo import LedgerEntryRepository, StatementKind

logger = logging.getLogger(__name__)

STATEMENT_DEFAULT_LIMIT = 10
STATEMENT_MAX_LIMIT = 50
STATEMENT_DEFAULT_DAYS = 30


@dataclass(frozen=True)
class LedgerReceipt:
    """The account after a command and the entry that recorded it."""

    account: Account
    entry: LedgerEntry


@dataclass(frozen=True)
class StatementPage:
    items: List[LedgerEntry]
    next_cursor: Optional[UUID]


class LedgerService:
    """Encapsulates balance commands and statement queries for :class:`Account`."""

    def __init__(
        self,
        account_repo: AccountRepository,
        entry_repo: LedgerEntryRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts = account_repo
        self._entries = entry_repo
        self._clock = clock

    # ── Queries ──

    async def get_account(self, account_id: UUID) -> Account:
        account = await self._accounts.get(account_id)
        if not account:
            raise NotFoundException("Account", account_id)
        return account

    async def statement(
        self,
        account_id: UUID,
        limit: int = STATEMENT_DEFAULT_LIMIT,
        cursor: Optional[UUID] = None,
        kind: str = StatementKind.ALL,
        since_days: int = STATEMENT_DEFAULT_DAYS,
        q: Optional[str] = None,
    ) -> StatementPage:
        """
        One newest-first page of the account's entries.

        ``limit`` is clamped to 1..50.  ``since_days`` of 0 means all time.
        ``next_cursor`` is the id of the last returned entry when more
        entries follow, otherwise ``None``.
        """
        await self.get_account(account_id)

        kind = (kind or StatementKind.ALL).upper()
        if kind not in StatementKind.CHOICES:
            raise ValidationFailed(
                f"Unknown statement kind '{kind}'",
                details=[{"field": "kind", "allowed": list(StatementKind.CHOICES)}],
            )
        if since_days < 0:
            raise ValidationFailed("since_days must not be negative")

        limit = min(max(limit, 1), STATEMENT_MAX_LIMIT)
        since = self._clock() - timedelta(days=since_days) if since_days > 0 else None
        query = q.strip() if q else None

        cursor_entry = None
        if cursor is not None:
            cursor_entry = await self._entries.get(cursor)
            if not cursor_entry or account_id not in (cursor_entry.from_id, cursor_entry.to_id):
                raise ValidationFailed(f"Invalid statement cursor '{cursor}'")

        rows = await self._entries.statement(
            account_id,
            limit=limit + 1,
            kind=kind,
            since=since,
            query=query or None,
            cursor=cursor_entry,
        )

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = rows[-1].id
        return StatementPage(items=rows, next_cursor=next_cursor)

    # ── Commands ──

    async def deposit(
        self, account_id: UUID, amount_cents: int, note: Optional[str] = None
    ) -> LedgerReceipt:
        _require_positive(amount_cents)
        account = await self.get_account(account_id)

        entry = LedgerEntry(
            kind=EntryKind.DEPOSIT,
            amount_cents=amount_cents,
            note=_clip_note(note),
            to_id=account_id,
            created_at=self._clock(),
        )
        async with atomic(self._accounts.db):
            await self._accounts.credit(account_id, amount_cents)
            self._entries.stage(entry)

        logger.info(
            "Deposit of %d cents into account %s",
            amount_cents,
            account_id,
            extra={"account_id": str(account_id), "amount_cents": amount_cents},
        )
        return LedgerReceipt(account=await self._accounts.reload(account), entry=entry)

    async def withdraw(
        self, account_id: UUID, amount_cents: int, note: Optional[str] = None
    ) -> LedgerReceipt:
        _require_positive(amount_cents)
        account = await self.get_account(account_id)
        if account.balance_cents < amount_cents:
            raise InsufficientFunds(account_id, amount_cents)

        entry = LedgerEntry(
            kind=EntryKind.WITHDRAW,
            amount_cents=amount_cents,
            note=_clip_note(note),
            from_id=account_id,
            created_at=self._clock(),
        )
        async with atomic(self._accounts.db):
            if not await self._accounts.debit(account_id, amount_cents):
                raise InsufficientFunds(account_id, amount_cents)
            self._entries.stage(entry)

        logger.info(
            "Withdrawal of %d cents from account %s",
            amount_cents,
            account_id,
            extra={"account_id": str(account_id), "amount_cents": amount_cents},
        )
        return LedgerReceipt(account=await self._accounts.reload(account), entry=entry)

    async def transfer(
        self,
        from_account_id: UUID,
        to_account_number: str,
        amount_cents: int,
        note: Optional[str] = None,
    ) -> LedgerReceipt:
        """
        Move money to the account identified by ``to_account_number``.

        Validation sequence:
        1. Source and destination must exist → 404.
        2. They must differ → 422.
        3. The source balance must cover the amount → 422.
        """
        _require_positive(amount_cents)
        source = await self.get_account(from_account_id)

        target = await self._accounts.get_by_number(to_account_number.strip())
        if not target:
            raise NotFoundException("Account", to_account_number)
        if target.id == source.id:
            raise BusinessRuleViolation("Cannot transfer to the same account")

        if source.balance_cents < amount_cents:
            raise InsufficientFunds(from_account_id, amount_cents)

        entry = LedgerEntry(
            kind=EntryKind.TRANSFER,
            amount_cents=amount_cents,
            note=_clip_note(note),
            from_id=source.id,
            to_id=target.id,
            created_at=self._clock(),
        )
        async with atomic(self._accounts.db):
            if not await self._accounts.debit(source.id, amount_cents):
                raise InsufficientFunds(from_account_id, amount_cents)
            await self._accounts.credit(target.id, amount_cents)
            self._entries.stage(entry)

        logger.info(
            "Transfer of %d cents from %s to %s",
            amount_cents,
            source.number,
            target.number,
            extra={"account_id": str(source.id), "amount_cents": amount_cents},
        )
        return LedgerReceipt(account=await self._accounts.reload(source), entry=entry)


def _require_positive(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise ValidationFailed("Amount must be greater than zero")


def _clip_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = note.strip()
    return note[:140] or None
