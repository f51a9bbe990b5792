"""
Investment service — business logic for products and positions.

Contains the position lifecycle:

- **buy** debits the account and opens an ACTIVE position;
- **redeem** values the position at the current minute, charges a fee on the
  redeemed share of the gain and credits the net amount.  Redeeming the whole
  current value closes the position; anything less shrinks it and restarts
  its accrual clock;
- **delete / cleanup** hard-delete CLOSED positions only.

Balance and position changes of one command are committed together through
:func:`simbank.db.transaction.atomic`.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional
from uuid import UUID

from simbank.core.config import settings
from simbank.core.exceptions import (
    BusinessRuleViolation,
    InsufficientFunds,
    LiquidityWindowPending,
    NotFoundException,
)
from simbank.core.money import format_cents
from simbank.db.transaction import atomic
from simbank.models.common import utcnow
from simbank.models.investment import InvestmentPosition, InvestmentProduct, PositionStatus
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.investment_repo import PositionRepository, ProductRepository
from simbank.services.accrual import compound_by_minutes, diff_minutes, round_half_up

logger = logging.getLogger(__name__)


# Demo catalogue, upserted by ``code``.
DEFAULT_PRODUCTS = (
    {
        "code": "CDB-FLEX",
        "name": "CDB Flex",
        "description": "Immediate liquidity, yields every minute.",
        "minute_rate_ppm": 2500,
        "min_amount_cents": 5000,
        "liquidity_minutes": 0,
    },
    {
        "code": "CDB-PLUS",
        "name": "CDB Plus",
        "description": "Short lock-up, higher rate.",
        "minute_rate_ppm": 4300,
        "min_amount_cents": 10000,
        "liquidity_minutes": 2,
    },
    {
        "code": "CDB-TURBO",
        "name": "CDB Turbo",
        "description": "Longest lock-up, boosted rate.",
        "minute_rate_ppm": 6800,
        "min_amount_cents": 10000,
        "liquidity_minutes": 3,
    },
)


@dataclass(frozen=True)
class RedemptionQuote:
    """Outcome of valuing a redemption request against a position."""

    is_full: bool
    current_cents: int
    requested_cents: int
    gain_cents: int
    fee_cents: int
    net_cents: int
    remaining_current_cents: int
    remaining_principal_cents: int

    @property
    def kind(self) -> str:
        return "FULL" if self.is_full else "PARTIAL"


@dataclass(frozen=True)
class PositionValuation:
    """A position together with its value at the moment it was read."""

    position: InvestmentPosition
    current_cents: int
    gain_cents: int


def quote_redemption(
    principal_cents: int,
    minute_rate_ppm: int,
    minutes_elapsed: int,
    amount_cents: Optional[int],
    fee_rate: float,
) -> RedemptionQuote:
    """
    Value a redemption without touching any state.

    ``amount_cents`` of ``None`` or ``<= 0`` redeems everything; amounts above
    the current value are capped to it.  The fee is ``fee_rate`` applied to
    the share of the accrued gain that leaves the position, so redeeming a
    position that has not yet gained anything is free.
    """
    current = compound_by_minutes(principal_cents, minute_rate_ppm, minutes_elapsed)
    gain_total = max(0, current - principal_cents)

    if amount_cents is None or amount_cents <= 0:
        value_to_redeem = current
    else:
        value_to_redeem = min(amount_cents, current)

    proportion = value_to_redeem / current if current > 0 else 0
    gain_part = round_half_up(gain_total * proportion)
    fee = round_half_up(gain_part * fee_rate)
    net = max(0, value_to_redeem - fee)
    is_full = value_to_redeem >= current

    if is_full:
        remaining_current = 0
        remaining_principal = 0
    else:
        remaining_current = max(0, current - value_to_redeem)
        remaining_principal = principal_cents - round_half_up(principal_cents * proportion)

    return RedemptionQuote(
        is_full=is_full,
        current_cents=current,
        requested_cents=value_to_redeem,
        gain_cents=gain_part,
        fee_cents=fee,
        net_cents=net,
        remaining_current_cents=remaining_current,
        remaining_principal_cents=remaining_principal,
    )


class InvestmentService:
    """
    Encapsulates catalogue reads and the position lifecycle.

    ``clock`` returns the current UTC instant; tests inject a fixed one to
    make accrual deterministic.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        product_repo: ProductRepository,
        position_repo: PositionRepository,
        fee_rate: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts = account_repo
        self._products = product_repo
        self._positions = position_repo
        self._fee_rate = (
            settings.INVEST_REDEMPTION_FEE_RATE if fee_rate is None else fee_rate
        )
        self._clock = clock

    # ── Catalogue ──

    async def list_products(self) -> List[InvestmentProduct]:
        return await self._products.list_by_rate()

    async def seed_products(self) -> List[InvestmentProduct]:
        """Insert or refresh the demo catalogue; safe to call repeatedly."""
        async with atomic(self._products.db):
            for data in DEFAULT_PRODUCTS:
                product = await self._products.get_by_code(data["code"])
                if product is None:
                    product = InvestmentProduct(**data)
                else:
                    for field, value in data.items():
                        setattr(product, field, value)
                self._products.stage(product)
        logger.info("Seeded %d investment products", len(DEFAULT_PRODUCTS))
        return await self._products.list_by_rate()

    # ── Queries ──

    async def list_positions(self, account_id: UUID) -> List[PositionValuation]:
        """
        Every position of the account valued at the current minute.

        CLOSED positions report their gross redeemed amount and stop accruing.
        """
        await self._get_account(account_id)
        positions = await self._positions.list_for_account(account_id)
        now = self._clock()

        valuations = []
        for position in positions:
            if position.status == PositionStatus.ACTIVE:
                current = compound_by_minutes(
                    position.principal_cents,
                    position.product.minute_rate_ppm,
                    diff_minutes(position.opened_at, now),
                )
            elif position.redeemed_cents is not None:
                current = position.redeemed_cents
            else:
                current = position.principal_cents
            valuations.append(
                PositionValuation(
                    position=position,
                    current_cents=current,
                    gain_cents=max(0, current - position.principal_cents),
                )
            )
        return valuations

    # ── Commands ──

    async def buy(
        self, account_id: UUID, product_id: UUID, amount_cents: int
    ) -> InvestmentPosition:
        """
        Open a position of ``amount_cents`` in a product.

        Validation sequence:
        1. The account and the product must exist → 404.
        2. The amount must reach the product minimum → 422.
        3. The balance must cover the amount → 422.
        """
        account = await self._get_account(account_id)

        product = await self._products.get(product_id)
        if not product:
            raise NotFoundException("InvestmentProduct", product_id)

        if amount_cents < product.min_amount_cents:
            raise BusinessRuleViolation(
                f"Minimum amount for {product.code} is "
                f"{format_cents(product.min_amount_cents)}"
            )

        if account.balance_cents < amount_cents:
            raise InsufficientFunds(account_id, amount_cents)

        position = InvestmentPosition(
            account_id=account_id,
            product_id=product.id,
            principal_cents=amount_cents,
            opened_at=self._clock(),
            status=PositionStatus.ACTIVE,
        )
        position.product = product

        async with atomic(self._accounts.db):
            if not await self._accounts.debit(account_id, amount_cents):
                raise InsufficientFunds(account_id, amount_cents)
            self._positions.stage(position)

        logger.info(
            "Opened position %s: account %s bought %s for %d cents",
            position.id,
            account_id,
            product.code,
            amount_cents,
            extra={
                "account_id": str(account_id),
                "position_id": str(position.id),
                "amount_cents": amount_cents,
            },
        )
        return position

    async def redeem(
        self,
        position_id: UUID,
        account_id: UUID,
        amount_cents: Optional[int] = None,
    ) -> RedemptionQuote:
        """
        Redeem all or part of an ACTIVE position.

        A position owned by another account is reported as not found.  The
        liquidity window is counted from ``opened_at``, which a partial
        redemption resets.  The position row is only changed if it is still
        in the state that was valued; otherwise nothing is credited.
        """
        position = await self._get_owned_position(position_id, account_id)

        if position.status != PositionStatus.ACTIVE:
            raise BusinessRuleViolation("Position is not active")

        product = position.product
        now = self._clock()
        elapsed = diff_minutes(position.opened_at, now)
        if elapsed < product.liquidity_minutes:
            logger.debug(
                "Redeem of %s rejected: %d of %d minutes elapsed",
                position_id,
                elapsed,
                product.liquidity_minutes,
            )
            raise LiquidityWindowPending(product.liquidity_minutes, elapsed)

        quote = quote_redemption(
            position.principal_cents,
            product.minute_rate_ppm,
            elapsed,
            amount_cents,
            self._fee_rate,
        )

        async with atomic(self._positions.db):
            # Guarded on the state read above; a concurrent redeem wins at most once.
            if quote.is_full:
                applied = await self._positions.close_if_active(
                    position_id, position.opened_at, quote.requested_cents, now
                )
            else:
                applied = await self._positions.reduce_if_active(
                    position_id, position.opened_at, quote.remaining_current_cents, now
                )
            if not applied:
                raise BusinessRuleViolation("Position is not active")

            if quote.is_full:
                position.close(quote.requested_cents, now)
            else:
                position.reopen(quote.remaining_current_cents, now)
            if quote.net_cents > 0:
                if not await self._accounts.credit(account_id, quote.net_cents):
                    raise NotFoundException("Account", account_id)

        logger.info(
            "%s redemption of position %s: gross=%d fee=%d net=%d",
            quote.kind,
            position_id,
            quote.requested_cents,
            quote.fee_cents,
            quote.net_cents,
            extra={
                "account_id": str(account_id),
                "position_id": str(position_id),
                "amount_cents": quote.net_cents,
            },
        )
        return quote

    async def delete_position(self, position_id: UUID, account_id: UUID) -> None:
        """Hard-delete one CLOSED position of the account."""
        position = await self._get_owned_position(position_id, account_id)
        if position.status != PositionStatus.CLOSED:
            raise BusinessRuleViolation("Only closed positions can be deleted")

        async with atomic(self._positions.db):
            await self._positions.stage_delete(position)
        logger.info("Deleted closed position %s", position_id)

    async def cleanup_closed(self, account_id: UUID) -> int:
        """Hard-delete every CLOSED position of the account; returns how many."""
        await self._get_account(account_id)
        async with atomic(self._positions.db):
            deleted = await self._positions.delete_closed_for_account(account_id)
        logger.info("Removed %d closed positions of account %s", deleted, account_id)
        return deleted

    # ── Helpers ──

    async def _get_account(self, account_id: UUID):
        account = await self._accounts.get(account_id)
        if not account:
            raise NotFoundException("Account", account_id)
        return account

    async def _get_owned_position(
        self, position_id: UUID, account_id: UUID
    ) -> InvestmentPosition:
        position = await self._positions.get(position_id)
        if not position or position.account_id != account_id:
            raise NotFoundException("InvestmentPosition", position_id)
        return position
