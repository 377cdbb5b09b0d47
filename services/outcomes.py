"""
Result values returned by the challenge engine.

Business rejections (expired, mismatch, blocked, ...) are returned, not
raised. Infrastructure faults (PyMongoError and friends) still propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from schemas.models.challenge import ChallengeDoc, ChallengePurpose


class OutcomeKind(str, Enum):
    ISSUED = "issued"
    ACCEPTED = "accepted"
    SUBJECT_NOT_FOUND = "subject_not_found"
    DELIVERY_FAILED = "delivery_failed"
    NO_ACTIVE_CHALLENGE = "no_active_challenge"
    EXPIRED = "expired"
    CODE_MISMATCH = "code_mismatch"
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class ChallengeInfo:
    """Challenge metadata safe to hand to callers (no code, no hash)."""

    challenge_id: str
    subject_id: str
    purpose: ChallengePurpose
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_doc(cls, doc: ChallengeDoc) -> "ChallengeInfo":
        return cls(
            challenge_id=str(doc.id),
            subject_id=doc.subject_id,
            purpose=doc.purpose,
            issued_at=doc.issued_at,
            expires_at=doc.expires_at,
        )


@dataclass(frozen=True)
class ChallengeOutcome:
    kind: OutcomeKind
    challenge: Optional[ChallengeInfo] = None

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.ISSUED, OutcomeKind.ACCEPTED)
