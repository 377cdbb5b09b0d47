"""
User document model.

Maps to the `users` MongoDB collection. The lower-cased email is both the
unique key and the subject id under which challenges and attempt counters
are recorded.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    password_hash: str
    email_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    password_changed_at: Optional[datetime] = None
