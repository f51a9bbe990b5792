"""
Conversion between integer cents and BRL display strings.

Amounts are integer cents everywhere inside the service; these helpers are
only used where values are shown to (or typed by) a person.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CURRENCY_PREFIX = "R$"

_DECIMAL_DOT = re.compile(r"^-?\d+\.\d{1,2}$")
_DECIMAL_COMMA = re.compile(r"^-?[\d.]+,\d{1,2}$")


def parse_cents(raw: str) -> int:
    """
    Convert a display amount in reais to cents.

    Accepts ``"R$ 1.234,56"``, ``"1234,56"``, ``"1234.56"`` and ``"1234"``.
    When a comma is present it is the decimal separator and dots group
    thousands, and at most two digits may follow it; otherwise a single dot
    followed by one or two digits is read as the decimal separator.

    Raises ``ValueError`` when the text is not an amount.
    """
    text = re.sub(r"\s", "", str(raw or ""))
    if text.startswith(CURRENCY_PREFIX):
        text = text[len(CURRENCY_PREFIX):]

    if "," in text:
        if not _DECIMAL_COMMA.match(text):
            raise ValueError(f"Not a monetary amount: {raw!r}")
        text = text.replace(".", "").replace(",", ".")
    elif not _DECIMAL_DOT.match(text):
        text = text.replace(".", "")

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {raw!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    """Render cents as ``R$ 1.234,56`` (``-R$ 0,50`` for negatives)."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(int(cents)), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}{CURRENCY_PREFIX} {grouped},{centavos:02d}"

