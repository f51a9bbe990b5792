"""SQLModel table models — import here so metadata is populated."""

from simbank.models.account import Account  # noqa: F401
from simbank.models.card import Card  # noqa: F401
from simbank.models.investment import InvestmentPosition, InvestmentProduct  # noqa: F401
from simbank.models.ledger import LedgerEntry  # noqa: F401
from simbank.models.pix import PixKey, PixTransfer  # noqa: F401
from simbank.models.user import User  # noqa: F401
