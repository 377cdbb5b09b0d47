"""
Account flows built on top of the challenge engine.

AuthService is the caller the engine expects: it owns the account record,
turns engine outcomes into typed AppErrors and performs the follow-up state
change (mark verified, store the new password hash) only after an ACCEPTED
redemption.

Enumeration rules:
- login: unknown email and wrong password are the same failure and count
  against the same throttle scope.
- code requests: an unknown email is answered exactly like a known one.
- code redemption: no-challenge, expired and wrong code share one message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pymongo.errors import DuplicateKeyError

from config import JWTSettings
from errors import (
    AuthenticationError,
    ConflictError,
    DeliveryError,
    RateLimitError,
    ValidationError,
)
from repositories.user_repository import UserRepository
from schemas.models.challenge import ChallengePurpose
from schemas.models.user import UserDoc
from services.attempt_throttle import SCOPE_LOGIN, AttemptThrottle
from services.challenge_service import ChallengeService
from services.outcomes import ChallengeInfo, ChallengeOutcome, OutcomeKind
from shared.clock import Clock, SystemClock
from shared.crypto import hash_password, verify_password_or_dummy
from shared.logging import get_logger
from shared.tokens import generate_access_jwt
from shared.validators import normalize_email, validate_email, validate_password

log = get_logger(__name__)

INVALID_CODE_MESSAGE = "Invalid or expired verification code"
BLOCKED_MESSAGE = "Too many failed attempts. Please try again later."


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    expires_in: int
    email_verified: bool


def raise_for_outcome(outcome: ChallengeOutcome) -> None:
    """Translate a rejected engine outcome into the matching AppError."""
    if outcome.ok:
        return
    kind = outcome.kind
    if kind == OutcomeKind.BLOCKED:
        raise RateLimitError(BLOCKED_MESSAGE)
    if kind == OutcomeKind.RATE_LIMITED:
        raise RateLimitError("Too many codes requested. Please try again later.")
    if kind in (
        OutcomeKind.NO_ACTIVE_CHALLENGE,
        OutcomeKind.EXPIRED,
        OutcomeKind.CODE_MISMATCH,
    ):
        raise ValidationError(INVALID_CODE_MESSAGE, field="code")
    if kind == OutcomeKind.DELIVERY_FAILED:
        raise DeliveryError(
            "We could not send the verification code. Please request a new one."
        )
    raise ValidationError("Request could not be completed")


def _require_valid_password(password: str, field: str = "password") -> None:
    valid, missing = validate_password(password)
    if not valid:
        raise ValidationError(
            "Password does not meet requirements", field=field, details=missing
        )


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        challenges: ChallengeService,
        throttle: AttemptThrottle,
        jwt_settings: JWTSettings,
        clock: Optional[Clock] = None,
    ) -> None:
        self._users = users
        self._challenges = challenges
        self._throttle = throttle
        self._jwt = jwt_settings
        self._clock = clock or SystemClock()

    async def register(self, email: str, password: str) -> ChallengeInfo:
        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError("Invalid email address", field="email")
        _require_valid_password(password)

        now = self._clock.now()
        user = UserDoc(
            email=email,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        try:
            await self._users.create(user)
        except DuplicateKeyError:
            raise ConflictError("User already exists", field="email")
        log.info("user_registered", email=email)

        outcome = await self._challenges.issue(email, ChallengePurpose.EMAIL_VERIFY)
        raise_for_outcome(outcome)
        return outcome.challenge

    async def login(self, email: str, password: str) -> LoginResult:
        subject = normalize_email(email)
        if not await self._throttle.check_and_record_attempt(subject, SCOPE_LOGIN):
            log.warning("login_blocked", email=subject)
            raise RateLimitError(BLOCKED_MESSAGE)

        user = await self._users.find_by_email(subject)
        if not verify_password_or_dummy(password, user.password_hash if user else None):
            await self._throttle.record_failure(subject, SCOPE_LOGIN)
            log.warning("login_failed", email=subject)
            raise AuthenticationError("Invalid credentials")

        await self._throttle.record_success(subject, SCOPE_LOGIN)
        token = generate_access_jwt(self._jwt, subject, self._clock.now())
        log.info("login_success", email=subject)
        return LoginResult(
            access_token=token,
            expires_in=self._jwt.access_token_ttl_seconds,
            email_verified=user.email_verified,
        )

    async def _request_code(self, email: str, purpose: ChallengePurpose) -> None:
        outcome = await self._challenges.issue(email, purpose)
        if outcome.kind == OutcomeKind.SUBJECT_NOT_FOUND:
            return
        raise_for_outcome(outcome)

    async def request_email_verification(self, email: str) -> None:
        email = normalize_email(email)
        user = await self._users.find_by_email(email)
        if user is not None and user.email_verified:
            log.info("verification_skipped", email=email, reason="already_verified")
            return
        await self._request_code(email, ChallengePurpose.EMAIL_VERIFY)

    async def verify_email(self, email: str, code: str) -> None:
        email = normalize_email(email)
        outcome = await self._challenges.redeem(email, ChallengePurpose.EMAIL_VERIFY, code)
        raise_for_outcome(outcome)
        await self._users.mark_verified(email, self._clock.now())
        log.info("email_verified", email=email)

    async def request_password_reset(self, email: str) -> None:
        await self._request_code(normalize_email(email), ChallengePurpose.PASSWORD_RESET)

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        email = normalize_email(email)
        # A rejected password leaves the code redeemable.
        _require_valid_password(new_password, field="new_password")

        outcome = await self._challenges.redeem(email, ChallengePurpose.PASSWORD_RESET, code)
        raise_for_outcome(outcome)

        await self._users.update_password_hash(
            email, hash_password(new_password), self._clock.now()
        )
        await self._throttle.unblock(email, SCOPE_LOGIN)
        log.info("password_reset_completed", email=email)

    async def unblock(self, subject_id: str, scope: str) -> bool:
        return await self._throttle.unblock(normalize_email(subject_id), scope)
