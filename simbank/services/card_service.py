"""
Card service — issuing and managing debit and credit cards.

Card data is cosmetic: the last four digits and expiry are random and the
``pan_token`` is an opaque identifier, not a card number.
"""

import logging
import random
import secrets
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional
from uuid import UUID

from simbank.core.exceptions import BusinessRuleViolation, NotFoundException, ValidationFailed
from simbank.db.transaction import atomic
from simbank.models.card import Card, CardStatus, CardType
from simbank.models.common import utcnow
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.card_repo import CardRepository

logger = logging.getLogger(__name__)


class CardAction(str, Enum):
    BLOCK = "BLOCK"
    UNBLOCK = "UNBLOCK"
    CANCEL = "CANCEL"


def generate_last4() -> str:
    return f"{random.randint(0, 9999):04d}"


def generate_expiry(now: datetime) -> tuple:
    """``(month, year)`` two to five years after ``now``."""
    return random.randint(1, 12), now.year + random.randint(2, 5)


def generate_pan_token() -> str:
    return "tok_" + secrets.token_hex(12)


class CardService:
    """Encapsulates card issuance and status / limit changes."""

    def __init__(
        self,
        card_repo: CardRepository,
        account_repo: AccountRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._cards = card_repo
        self._accounts = account_repo
        self._clock = clock

    # ── Queries ──

    async def list_cards(self, account_id: UUID) -> List[Card]:
        if not await self._accounts.get(account_id):
            raise NotFoundException("Account", account_id)
        return await self._cards.list_for_account(account_id)

    async def get_card(self, card_id: UUID) -> Card:
        card = await self._cards.get(card_id)
        if not card:
            raise NotFoundException("Card", card_id)
        return card

    # ── Commands ──

    async def create_card(
        self,
        account_id: UUID,
        card_type: CardType,
        holder_name: str,
        is_virtual: bool = False,
        brand: str = "VISA",
        credit_limit_cents: Optional[int] = None,
    ) -> Card:
        """
        Issue a card for the account.

        CREDIT cards need a positive ``credit_limit_cents``, which also
        becomes their initial available credit.
        """
        if card_type == CardType.CREDIT and (credit_limit_cents is None or credit_limit_cents <= 0):
            raise ValidationFailed("credit_limit_cents is required for credit cards")
        if not await self._accounts.get(account_id):
            raise NotFoundException("Account", account_id)

        now = self._clock()
        exp_month, exp_year = generate_expiry(now)
        is_credit = card_type == CardType.CREDIT
        card = Card(
            account_id=account_id,
            type=card_type,
            is_virtual=is_virtual,
            brand=brand or "VISA",
            holder_name=holder_name.strip(),
            last4=generate_last4(),
            pan_token=generate_pan_token(),
            exp_month=exp_month,
            exp_year=exp_year,
            credit_limit_cents=credit_limit_cents if is_credit else None,
            available_credit_cents=credit_limit_cents if is_credit else None,
            created_at=now,
            updated_at=now,
        )
        async with atomic(self._cards.db):
            self._cards.stage(card)

        logger.info("Issued %s card %s for account %s", card_type.value, card.id, account_id)
        return card

    async def update_card(
        self,
        card_id: UUID,
        action: Optional[CardAction] = None,
        credit_limit_cents: Optional[int] = None,
    ) -> Card:
        """
        Apply a status action and/or a new credit limit.

        BLOCK works unless the card is CANCELED, UNBLOCK only from BLOCKED,
        CANCEL always; any other combination leaves the status unchanged.
        A new limit keeps the amount already used, so the available credit
        becomes ``max(0, new_limit - used)``.
        """
        card = await self.get_card(card_id)

        if credit_limit_cents is not None:
            if card.type != CardType.CREDIT:
                raise BusinessRuleViolation("Only credit cards have a credit limit")
            if credit_limit_cents <= 0:
                raise ValidationFailed("credit_limit_cents must be greater than zero")

        if action == CardAction.BLOCK and card.status != CardStatus.CANCELED:
            card.status = CardStatus.BLOCKED
        elif action == CardAction.UNBLOCK and card.status == CardStatus.BLOCKED:
            card.status = CardStatus.ACTIVE
        elif action == CardAction.CANCEL:
            card.status = CardStatus.CANCELED

        if credit_limit_cents is not None:
            previous = card.credit_limit_cents or 0
            available = previous if card.available_credit_cents is None else card.available_credit_cents
            used = previous - available
            card.credit_limit_cents = credit_limit_cents
            card.available_credit_cents = max(0, credit_limit_cents - used)

        card.updated_at = self._clock()
        async with atomic(self._cards.db):
            self._cards.stage(card)

        logger.info("Updated card %s: status=%s", card_id, card.status.value)
        return card
