"""
Shared field types for billing domain models.
"""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are UTC (SQLite drops the offset); aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
