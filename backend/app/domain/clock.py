"""
Timestamp normalisation.

Timestamps are naive UTC throughout the ledger. Values arriving with an
offset (ISO strings ending in `Z` or `+05:00`, or timestamptz columns
reloaded through asyncpg) are converted to UTC and stripped of tzinfo
before they are stored or compared.
"""

from datetime import datetime, timezone
from typing import Optional


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
