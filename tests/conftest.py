"""
Shared pytest fixtures.

Unit tests run against mocked repositories; the ``database`` fixture gives
integration tests a fresh in-memory SQLite (aiosqlite) database per test.
``USE_SQLITE`` is forced before any ``simbank`` import because settings are
loaded at import time.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from simbank.core.config import settings  # noqa: E402
from simbank.core.resilience import db_circuit_breaker  # noqa: E402
from simbank.db.session import Database  # noqa: E402
from simbank.models.account import Account  # noqa: E402
from simbank.models.card import Card, CardStatus, CardType  # noqa: E402
from simbank.models.investment import (  # noqa: E402
    InvestmentPosition,
    InvestmentProduct,
    PositionStatus,
)
from simbank.models.ledger import EntryKind, LedgerEntry  # noqa: E402
from simbank.models.pix import PixKey, PixKeyType  # noqa: E402
from simbank.models.user import User  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
ACCOUNT_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ACCOUNT_ID_2 = uuid.UUID("33333333-3333-3333-3333-333333333333")
PRODUCT_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
POSITION_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")
CARD_ID = uuid.UUID("66666666-6666-6666-6666-666666666666")
KEY_ID = uuid.UUID("77777777-7777-7777-7777-777777777777")

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock(at: datetime = NOW):
    """A clock callable returning ``at``."""
    return lambda: at


def minutes_ago(minutes: float, now: datetime = NOW) -> datetime:
    return now - timedelta(minutes=minutes)


def make_user(*, id: uuid.UUID = USER_ID, cpf: str = "39053344705", name: str = "Maria Silva") -> User:
    return User(id=id, name=name, cpf=cpf, password_hash="x" * 128, password_salt="s" * 32)


def make_account(
    *,
    id: uuid.UUID = ACCOUNT_ID,
    owner_id: uuid.UUID = USER_ID,
    number: str = "123456-1",
    balance_cents: int = 100_000,
) -> Account:
    return Account(id=id, owner_id=owner_id, number=number, balance_cents=balance_cents)


def make_product(
    *,
    id: uuid.UUID = PRODUCT_ID,
    code: str = "CDB-TEST",
    minute_rate_ppm: int = 800,
    min_amount_cents: int = 5000,
    liquidity_minutes: int = 0,
) -> InvestmentProduct:
    return InvestmentProduct(
        id=id,
        code=code,
        name="CDB Test",
        minute_rate_ppm=minute_rate_ppm,
        min_amount_cents=min_amount_cents,
        liquidity_minutes=liquidity_minutes,
    )


def make_position(
    *,
    id: uuid.UUID = POSITION_ID,
    account_id: uuid.UUID = ACCOUNT_ID,
    product: InvestmentProduct | None = None,
    principal_cents: int = 10_000,
    opened_at: datetime | None = None,
    status: PositionStatus = PositionStatus.ACTIVE,
    redeemed_cents: int | None = None,
) -> InvestmentPosition:
    product = product or make_product()
    position = InvestmentPosition(
        id=id,
        account_id=account_id,
        product_id=product.id,
        principal_cents=principal_cents,
        opened_at=opened_at or minutes_ago(10),
        status=status,
        redeemed_cents=redeemed_cents,
        closed_at=NOW if status == PositionStatus.CLOSED else None,
    )
    position.product = product
    return position


def make_entry(
    *,
    kind: EntryKind = EntryKind.DEPOSIT,
    amount_cents: int = 1000,
    from_id: uuid.UUID | None = None,
    to_id: uuid.UUID | None = ACCOUNT_ID,
    created_at: datetime = NOW,
) -> LedgerEntry:
    return LedgerEntry(
        kind=kind,
        amount_cents=amount_cents,
        from_id=from_id,
        to_id=to_id,
        created_at=created_at,
    )


def make_card(
    *,
    id: uuid.UUID = CARD_ID,
    type: CardType = CardType.CREDIT,
    status: CardStatus = CardStatus.ACTIVE,
    credit_limit_cents: int | None = 100_000,
    available_credit_cents: int | None = 100_000,
) -> Card:
    return Card(
        id=id,
        account_id=ACCOUNT_ID,
        type=type,
        holder_name="MARIA SILVA",
        last4="1234",
        pan_token="tok_test",
        exp_month=5,
        exp_year=2030,
        status=status,
        credit_limit_cents=credit_limit_cents,
        available_credit_cents=available_credit_cents,
        created_at=NOW,
        updated_at=NOW,
    )


def make_pix_key(
    *,
    id: uuid.UUID = KEY_ID,
    account_id: uuid.UUID = ACCOUNT_ID_2,
    type: PixKeyType = PixKeyType.CPF,
    value: str = "12345678901",
    is_primary: bool = False,
) -> PixKey:
    return PixKey(id=id, account_id=account_id, type=type, value=value, is_primary=is_primary)


def make_repo(db) -> AsyncMock:
    """
    An async repository double sharing ``db``.

    ``stage`` is synchronous on the real repositories, so it is replaced by
    a MagicMock that returns the staged entity.
    """
    repo = AsyncMock()
    repo.db = db
    repo.stage = MagicMock(side_effect=lambda entity: entity)
    return repo


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest_asyncio.fixture()
async def database():
    """A fresh in-memory SQLite database with every table created."""
    db = Database.from_settings(settings, "sqlite+aiosqlite://")
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    """Keep the shared database circuit closed between tests."""
    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()
