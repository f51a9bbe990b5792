"""
Seed script — populates the database with demo data.

Usage::

    python -m simbank.seed
    python -m simbank.seed --cpf 39053344705 --password demo123 --balance "R$ 1.000,00"

Upserts the investment catalogue and, unless ``--no-user`` is given,
registers a demo user whose account is funded with ``--balance``.  The
script is idempotent: an already registered CPF is left untouched.
"""

import argparse
import asyncio
import logging
from typing import List, Optional

from simbank.core.config import settings
from simbank.core.exceptions import ConflictException
from simbank.core.money import format_cents, parse_cents
from simbank.db.session import Database
from simbank.models.account import Account
from simbank.models.investment import InvestmentPosition, InvestmentProduct
from simbank.models.ledger import LedgerEntry
from simbank.models.user import User
from simbank.repositories.account_repo import AccountRepository
from simbank.repositories.investment_repo import PositionRepository, ProductRepository
from simbank.repositories.ledger_repo import LedgerEntryRepository
from simbank.repositories.user_repo import UserRepository
from simbank.services.investment_service import InvestmentService
from simbank.services.ledger_service import LedgerService
from simbank.services.user_service import UserService

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s"
)
logger = logging.getLogger(__name__)

DEMO_NAME = "Demo User"
DEMO_CPF = "39053344705"
DEMO_PASSWORD = "demo123"
DEMO_BALANCE = "R$ 1.000,00"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed SimBank with demo data.")
    parser.add_argument("--name", default=DEMO_NAME)
    parser.add_argument("--cpf", default=DEMO_CPF)
    parser.add_argument("--password", default=DEMO_PASSWORD)
    parser.add_argument(
        "--balance",
        default=DEMO_BALANCE,
        help='Opening balance, e.g. "R$ 1.000,00" or "250.50"',
    )
    parser.add_argument("--no-user", action="store_true", help="Only seed the catalogue")
    args = parser.parse_args(argv)
    try:
        args.balance_cents = parse_cents(args.balance)
    except ValueError as exc:
        parser.error(str(exc))
    if args.balance_cents < 0:
        parser.error("--balance must not be negative")
    return args


async def seed(args: argparse.Namespace, database: Optional[Database] = None) -> None:
    """Create tables, upsert the catalogue and register the demo user."""
    database = database or Database.from_settings(settings)
    await database.create_all()

    async with database.sessionmaker() as session:
        invest = InvestmentService(
            AccountRepository(Account, session),
            ProductRepository(InvestmentProduct, session),
            PositionRepository(InvestmentPosition, session),
        )
        products = await invest.seed_products()
        logger.info("Catalogue: %s", ", ".join(p.code for p in products))

        if args.no_user:
            return

        users = UserService(UserRepository(User, session), AccountRepository(Account, session))
        try:
            profile = await users.register(args.name, args.cpf, args.password)
        except ConflictException:
            logger.info("CPF %s already registered — skipping demo user.", args.cpf)
            return

        if args.balance_cents > 0:
            ledger = LedgerService(
                AccountRepository(Account, session), LedgerEntryRepository(LedgerEntry, session)
            )
            await ledger.deposit(profile.account.id, args.balance_cents, "Opening balance")

        logger.info(
            "Demo user %s: account %s/%s with %s",
            profile.user.name,
            profile.account.agency,
            profile.account.number,
            format_cents(args.balance_cents),
        )


async def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    database = Database.from_settings(settings)
    try:
        await seed(args, database)
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
