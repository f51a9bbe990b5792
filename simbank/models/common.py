"""Column helpers shared by the table models."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime
from sqlmodel import Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_field(**kwargs: Any) -> Any:
    """A non-null, timezone-aware ``created_at``-style column defaulting to now."""
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        **kwargs,
    )
