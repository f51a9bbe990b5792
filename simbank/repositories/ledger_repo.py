"""
Ledger repository — data-access layer for the ``transactions`` table.

The statement query pages newest-first on ``(created_at, id)`` using a
keyset cursor: the next page holds the rows strictly after the cursor row in
that ordering, so inserts between page requests never shift rows across
pages.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import aliased

from simbank.models.account import Account
from simbank.models.ledger import EntryKind, LedgerEntry
from simbank.repositories.base import BaseRepository


class StatementKind:
    """Filters accepted by the statement query."""

    ALL = "ALL"
    IN = "IN"
    OUT = "OUT"
    DEPOSIT = EntryKind.DEPOSIT.value
    WITHDRAW = EntryKind.WITHDRAW.value
    TRANSFER = EntryKind.TRANSFER.value

    CHOICES = (ALL, IN, OUT, DEPOSIT, WITHDRAW, TRANSFER)


class LedgerEntryRepository(BaseRepository[LedgerEntry]):
    """Concrete repository for :class:`LedgerEntry` rows."""

    async def statement(
        self,
        account_id: UUID,
        *,
        limit: int,
        kind: str = StatementKind.ALL,
        since: Optional[datetime] = None,
        query: Optional[str] = None,
        cursor: Optional[LedgerEntry] = None,
    ) -> List[LedgerEntry]:
        """
        Return up to ``limit`` entries touching ``account_id``.

        Parameters
        ----------
        kind : str
            One of :attr:`StatementKind.CHOICES`.  ``IN`` keeps entries that
            credited the account, ``OUT`` entries that debited it.
        since : datetime, optional
            Lower bound (inclusive) on ``created_at``.
        query : str, optional
            Case-insensitive substring matched against the note and both
            counterparty account numbers.
        cursor : LedgerEntry, optional
            Last row of the previous page.
        """
        stmt = select(LedgerEntry).where(
            or_(LedgerEntry.from_id == account_id, LedgerEntry.to_id == account_id)
        )

        if kind == StatementKind.IN:
            stmt = stmt.where(
                LedgerEntry.to_id == account_id,
                LedgerEntry.kind.in_([EntryKind.DEPOSIT, EntryKind.TRANSFER]),
            )
        elif kind == StatementKind.OUT:
            stmt = stmt.where(
                LedgerEntry.from_id == account_id,
                LedgerEntry.kind.in_([EntryKind.WITHDRAW, EntryKind.TRANSFER]),
            )
        elif kind != StatementKind.ALL:
            stmt = stmt.where(LedgerEntry.kind == EntryKind(kind))

        if since is not None:
            stmt = stmt.where(LedgerEntry.created_at >= since)

        if query:
            needle = query.lower()
            source = aliased(Account)
            target = aliased(Account)
            stmt = (
                stmt.outerjoin(source, LedgerEntry.from_id == source.id)
                .outerjoin(target, LedgerEntry.to_id == target.id)
                .where(
                    or_(
                        func.lower(LedgerEntry.note).contains(needle, autoescape=True),
                        func.lower(source.number).contains(needle, autoescape=True),
                        func.lower(target.number).contains(needle, autoescape=True),
                    )
                )
            )

        if cursor is not None:
            stmt = stmt.where(
                or_(
                    LedgerEntry.created_at < cursor.created_at,
                    and_(
                        LedgerEntry.created_at == cursor.created_at,
                        LedgerEntry.id < cursor.id,
                    ),
                )
            )

        stmt = stmt.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).limit(limit)
        return await self._scalars(stmt)
