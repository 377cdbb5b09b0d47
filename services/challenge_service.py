"""
One-time challenge engine: issue codes, redeem them exactly once.

issue()  resolves the subject, generates a code, atomically supersedes the
         subject's previous challenge for the same purpose and hands the
         code to the delivery channel.
redeem() reserves an attempt with the throttle, then checks existence,
         expiry and the code (constant time) before consuming the
         challenge with a single conditional write.

Neither operation touches the account record; callers act on an ACCEPTED
outcome themselves (mark verified, change password).
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from infrastructure.cache.issue_limiter import IssueRateLimiter
from infrastructure.email.protocol import CodeDelivery, DeliveryChannel
from repositories.challenge_repository import ChallengeRepository
from repositories.user_repository import UserRepository
from schemas.models.challenge import ChallengeDoc, ChallengePurpose
from services.attempt_throttle import AttemptThrottle, redeem_scope
from services.outcomes import ChallengeInfo, ChallengeOutcome, OutcomeKind
from shared.clock import Clock, SystemClock
from shared.crypto import constant_time_equals, hash_token
from shared.generators import CodePolicy, generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_TTL_SECONDS = 600  # 10 minutes

# Redraws allowed when a new code collides with another live code of the subject.
_MAX_CODE_DRAWS = 10


class ChallengeService:
    def __init__(
        self,
        challenges: ChallengeRepository,
        users: UserRepository,
        delivery: DeliveryChannel,
        throttle: AttemptThrottle,
        policy: CodePolicy = CodePolicy(),
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        issue_limiter: Optional[IssueRateLimiter] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._challenges = challenges
        self._users = users
        self._delivery = delivery
        self._throttle = throttle
        self.policy = policy
        self.ttl_seconds = ttl_seconds
        self._issue_limiter = issue_limiter
        self._clock = clock or SystemClock()

    async def _draw_code(self, subject_id: str) -> str:
        """Draw a code that matches no other live challenge of the subject."""
        live_hashes = {
            c.code_hash for c in await self._challenges.list_active_for_subject(subject_id)
        }
        for _ in range(_MAX_CODE_DRAWS):
            code = generate_otp_code(self.policy)
            if hash_token(code) not in live_hashes:
                return code
        raise RuntimeError("could not draw a unique one-time code")

    async def issue(
        self, subject_id: str, purpose: ChallengePurpose
    ) -> ChallengeOutcome:
        # Unknown subjects spend issue budget too.
        if self._issue_limiter is not None and not await self._issue_limiter.hit(
            subject_id, purpose.value
        ):
            return ChallengeOutcome(OutcomeKind.RATE_LIMITED)

        user = await self._users.find_by_email(subject_id)
        if user is None:
            log.info("challenge_issue_rejected", subject_id=subject_id, reason="subject_not_found")
            return ChallengeOutcome(OutcomeKind.SUBJECT_NOT_FOUND)

        code = await self._draw_code(subject_id)
        now = self._clock.now()
        doc = ChallengeDoc(
            subject_id=subject_id,
            purpose=purpose,
            code_hash=hash_token(code),
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        stored = await self._challenges.replace_active(doc, now)
        info = ChallengeInfo.from_doc(stored)
        log.info(
            "challenge_issued",
            subject_id=subject_id,
            purpose=purpose.value,
            challenge_id=info.challenge_id,
            expires_at=info.expires_at.isoformat(),
        )

        delivered = await self._delivery.send(
            user.email,
            CodeDelivery(
                purpose=purpose.value,
                code=code,
                expires_at=info.expires_at,
                ttl_minutes=max(1, self.ttl_seconds // 60),
            ),
        )
        if not delivered:
            # The challenge stays; issuing again is the resend path.
            log.error(
                "challenge_delivery_failed",
                subject_id=subject_id,
                purpose=purpose.value,
                challenge_id=info.challenge_id,
            )
            return ChallengeOutcome(OutcomeKind.DELIVERY_FAILED, info)

        return ChallengeOutcome(OutcomeKind.ISSUED, info)

    async def _reject(
        self, subject_id: str, purpose: ChallengePurpose, kind: OutcomeKind
    ) -> ChallengeOutcome:
        await self._throttle.record_failure(subject_id, redeem_scope(purpose.value))
        log.warning(
            "challenge_redeem_rejected",
            subject_id=subject_id,
            purpose=purpose.value,
            reason=kind.value,
        )
        return ChallengeOutcome(kind)

    async def redeem(
        self, subject_id: str, purpose: ChallengePurpose, supplied_code: str
    ) -> ChallengeOutcome:
        scope = redeem_scope(purpose.value)
        if not await self._throttle.check_and_record_attempt(subject_id, scope):
            log.warning("challenge_redeem_blocked", subject_id=subject_id, purpose=purpose.value)
            return ChallengeOutcome(OutcomeKind.BLOCKED)

        challenge = await self._challenges.find_active(subject_id, purpose)
        if challenge is None:
            return await self._reject(subject_id, purpose, OutcomeKind.NO_ACTIVE_CHALLENGE)

        now = self._clock.now()
        if challenge.is_expired(now):
            return await self._reject(subject_id, purpose, OutcomeKind.EXPIRED)

        supplied_hash = hash_token(self.policy.normalize(supplied_code))
        if not constant_time_equals(supplied_hash, challenge.code_hash):
            # A code from an already used or replaced challenge is dead, not wrong.
            if await self._challenges.has_retired_code(subject_id, purpose, supplied_hash):
                return await self._reject(subject_id, purpose, OutcomeKind.NO_ACTIVE_CHALLENGE)
            return await self._reject(subject_id, purpose, OutcomeKind.CODE_MISMATCH)

        # The code was right, so the attempt settles as a success either way.
        consumed = await self._challenges.consume(challenge.id, now)
        await self._throttle.record_success(subject_id, scope)
        if consumed is None:
            # Another request consumed or superseded it between read and write.
            log.info(
                "challenge_redeem_lost_race",
                subject_id=subject_id,
                purpose=purpose.value,
                challenge_id=str(challenge.id),
            )
            return ChallengeOutcome(OutcomeKind.NO_ACTIVE_CHALLENGE)

        log.info(
            "challenge_redeemed",
            subject_id=subject_id,
            purpose=purpose.value,
            challenge_id=str(consumed.id),
        )
        return ChallengeOutcome(OutcomeKind.ACCEPTED, ChallengeInfo.from_doc(consumed))
