"""
One-time challenge document model.

Maps to the `otp-challenges` MongoDB collection.

code_hash stores SHA-256(normalised code); the plain code is never stored.
`active` is true until the challenge is consumed or superseded; a partial
unique index on (subject_id, purpose) over active documents guarantees a
subject never holds two redeemable codes for the same purpose. Expired
challenges stay in the collection for audit.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import field_serializer, model_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc


class ChallengePurpose(str, Enum):
    EMAIL_VERIFY = "email_verify"
    PASSWORD_RESET = "password_reset"


class ChallengeDoc(MongoBaseModel):
    """Document model for the `otp-challenges` collection."""

    subject_id: str
    purpose: ChallengePurpose
    code_hash: str
    issued_at: datetime
    expires_at: datetime
    active: bool = True
    consumed: bool = False
    consumed_at: Optional[datetime] = None
    superseded_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _normalise_times(self) -> "ChallengeDoc":
        self.issued_at = ensure_utc(self.issued_at)
        self.expires_at = ensure_utc(self.expires_at)
        self.consumed_at = ensure_utc(self.consumed_at)
        self.superseded_at = ensure_utc(self.superseded_at)
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self

    @field_serializer("purpose")
    def _serialise_purpose(self, purpose: ChallengePurpose) -> str:
        return purpose.value

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
