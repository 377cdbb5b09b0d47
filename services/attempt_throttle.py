"""
Consecutive-failure throttle shared by the login and code-redemption paths.

Every attempt goes through three steps:

    if not await throttle.check_and_record_attempt(subject, scope):
        ...  # blocked, do not evaluate the attempt
    ok = <check the password or the code>
    await (throttle.record_success if ok else throttle.record_failure)(subject, scope)

check_and_record_attempt() reserves the attempt with one conditional write
before it is evaluated and counts it as a failure until record_success()
settles it. Concurrent attempts therefore cannot exceed ``max_failures``
between them. Once ``max_failures`` attempts fail, the pair is blocked until
``cooldown_seconds`` elapse (checked lazily on the next attempt) or an
administrator calls ``unblock``. With ``cooldown_seconds=None`` only
``unblock`` lifts it. A success never lifts a block.

Subjects are plain strings and are never resolved against the account
store, so an unknown email is throttled exactly like a real one.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from repositories.attempt_repository import AttemptRepository
from shared.clock import Clock, SystemClock
from shared.logging import get_logger

log = get_logger(__name__)

SCOPE_LOGIN = "login"


def redeem_scope(purpose: str) -> str:
    return f"redeem:{purpose}"


class AttemptThrottle:
    def __init__(
        self,
        attempts: AttemptRepository,
        max_failures: int = 3,
        cooldown_seconds: Optional[int] = 900,
        clock: Optional[Clock] = None,
    ) -> None:
        if max_failures < 1:
            raise ValueError("max_failures must be at least 1")
        if cooldown_seconds is not None and cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be positive or None")
        self._attempts = attempts
        self.max_failures = max_failures
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock or SystemClock()

    async def check_and_record_attempt(self, subject_id: str, scope: str) -> bool:
        """Reserve one attempt. False means blocked: reject without evaluating."""
        now = self._clock.now()
        counter = await self._attempts.reserve(subject_id, scope, self.max_failures, now)
        if counter is None and await self._attempts.release_expired_block(
            subject_id, scope, now
        ):
            log.info("throttle_cooldown_elapsed", subject_id=subject_id, scope=scope)
            counter = await self._attempts.reserve(
                subject_id, scope, self.max_failures, now
            )
        if counter is None:
            log.warning("attempt_rejected_blocked", subject_id=subject_id, scope=scope)
            return False
        return True

    async def record_failure(self, subject_id: str, scope: str) -> None:
        """Settle a reserved attempt as failed; blocks the pair at the limit."""
        now = self._clock.now()
        blocked_until = (
            now + timedelta(seconds=self.cooldown_seconds)
            if self.cooldown_seconds is not None
            else None
        )
        if await self._attempts.mark_blocked(
            subject_id, scope, self.max_failures, blocked_until, now
        ):
            log.warning(
                "subject_blocked",
                subject_id=subject_id,
                scope=scope,
                blocked_until=blocked_until.isoformat() if blocked_until else None,
            )

    async def record_success(self, subject_id: str, scope: str) -> None:
        """Settle a reserved attempt as successful and restart the count."""
        await self._attempts.clear_failures(subject_id, scope, self._clock.now())

    async def unblock(self, subject_id: str, scope: str) -> bool:
        """Administrative unlock. Returns True if a counter was cleared."""
        cleared = await self._attempts.reset(subject_id, scope, self._clock.now())
        log.info("subject_unblocked", subject_id=subject_id, scope=scope, cleared=cleared)
        return cleared
