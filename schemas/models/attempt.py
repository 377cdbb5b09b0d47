"""
Failed-attempt counter document model.

Maps to the `attempt-counters` MongoDB collection, one document per
(subject_id, scope). Scopes are free-form strings such as ``login`` or
``redeem:password_reset``.

blocked is set once failures reach the configured maximum. blocked_until is
the end of the cool-down, or None for a block that only an administrator
can lift.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class AttemptCounterDoc(MongoBaseModel):
    """Document model for the `attempt-counters` collection."""

    subject_id: str
    scope: str
    failures: int = Field(default=0, ge=0)
    blocked: bool = False
    blocked_until: Optional[datetime] = None
    updated_at: Optional[datetime] = None
