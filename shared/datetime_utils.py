"""
Date/time helpers — framework-agnostic.

Some database drivers (SQLite in particular) hand back naive datetimes even
for ``DateTime(timezone=True)`` columns. Everything in this service compares
timezone-aware UTC values, so reads go through ``ensure_utc``.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def seconds_until(deadline: datetime, now: datetime) -> int:
    """Whole seconds from *now* to *deadline*, rounded up; 0 once passed."""
    remaining = (ensure_utc(deadline) - ensure_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining)
