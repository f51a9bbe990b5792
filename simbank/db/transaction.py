"""
Atomic unit of work for balance-changing commands.

Every command that touches an account balance stages all of its writes
(balance increments, ledger rows, position changes) on one session and runs
them inside :func:`atomic`.  Either the whole block commits or, on any
exception, the session is rolled back and the exception re-raised, so a
command is never partially applied.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from simbank.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Commit the writes staged inside the block, or roll all of them back.

    Usage::

        async with atomic(session):
            await accounts.debit(source_id, amount)
            await accounts.credit(target_id, amount)
            entries.stage(LedgerEntry(...))
    """
    try:
        yield session
        await db_circuit_breaker.call(session.commit)
    except Exception:
        await session.rollback()
        logger.debug("Rolled back unit of work")
        raise
