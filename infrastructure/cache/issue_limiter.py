"""Fixed-window limiter on how often codes may be issued to one subject.

Backed by Redis INCR/EXPIRE. Without Redis, or when Redis errors, every
issue is allowed.
"""

from typing import Optional

import redis.asyncio as aioredis

from shared.logging import get_logger

log = get_logger(__name__)


class IssueRateLimiter:
    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        max_issues: int = 3,
        window_seconds: int = 3600,
    ) -> None:
        self._redis = redis_client
        self.max_issues = max_issues
        self.window_seconds = window_seconds

    def _key(self, subject_id: str, purpose: str) -> str:
        return f"otp_issue:{purpose}:{subject_id}"

    async def hit(self, subject_id: str, purpose: str) -> bool:
        """Count one issue; return False once the window's budget is spent."""
        if self._redis is None:
            return True
        key = self._key(subject_id, purpose)
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, self.window_seconds)
        except Exception as e:
            log.warning(
                "issue_limiter_error",
                subject_id=subject_id,
                purpose=purpose,
                error=str(e),
                error_type=type(e).__name__,
            )
            return True

        if count > self.max_issues:
            log.warning(
                "issue_rate_limited",
                subject_id=subject_id,
                purpose=purpose,
                count=count,
            )
            return False
        return True
