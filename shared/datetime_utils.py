"""
Date/time helpers: framework-agnostic.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as a timezone-aware UTC datetime.

    MongoDB hands back naive datetimes unless the client is created with
    ``tz_aware=True``; naive values are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
