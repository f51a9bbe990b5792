"""
Accrual engine — value of an investment position at a given instant.

Interest compounds once per whole elapsed minute at a per-minute rate
expressed in parts-per-million (1_000_000 ppm = 100 %).  Results are floored
to whole cents so accrual can only round value down.
"""

import math
from datetime import datetime, timezone

PPM = 1_000_000


def minute_rate_to_factor(minute_rate_ppm: int) -> float:
    """Per-minute growth factor, e.g. 800 ppm → 1.0008."""
    return 1 + minute_rate_ppm / PPM


def compound_by_minutes(
    principal_cents: int, minute_rate_ppm: int, minutes_elapsed: int
) -> int:
    """
    Compound ``principal_cents`` over ``minutes_elapsed`` whole minutes.

    Returns the principal unchanged for zero or negative elapsed time;
    otherwise ``floor(principal * factor ** minutes)``.
    """
    if minutes_elapsed <= 0:
        return principal_cents
    factor = minute_rate_to_factor(minute_rate_ppm)
    return math.floor(principal_cents * factor**minutes_elapsed)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def diff_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``; never negative."""
    elapsed_ms = (_as_utc(end) - _as_utc(start)).total_seconds() * 1000
    return max(0, math.floor(elapsed_ms / 60000))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 → 3, not 2)."""
    return math.floor(value + 0.5)
