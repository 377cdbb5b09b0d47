"""
Shared test doubles.

In-memory stand-ins for the Mongo repositories with the same conditional
write semantics (each compare-and-set runs without an await in between, so
it is atomic under one event loop), a controllable clock and a recording
delivery channel.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from schemas.models.attempt import AttemptCounterDoc
from schemas.models.user import UserDoc
from services.attempt_throttle import AttemptThrottle
from services.challenge_service import ChallengeService


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeUserRepository:
    def __init__(self) -> None:
        self.users = {}

    async def find_by_email(self, email):
        user = self.users.get(email)
        return user.model_copy() if user else None

    async def create(self, user):
        if user.email in self.users:
            raise DuplicateKeyError("E11000 duplicate key error")
        stored = user.model_copy(update={"id": ObjectId()})
        self.users[user.email] = stored
        return stored.id

    async def mark_verified(self, email, now):
        user = self.users.get(email)
        if user is None:
            return False
        self.users[email] = user.model_copy(
            update={"email_verified": True, "verified_at": now, "updated_at": now}
        )
        return True

    async def update_password_hash(self, email, password_hash, now):
        user = self.users.get(email)
        if user is None:
            return False
        self.users[email] = user.model_copy(
            update={"password_hash": password_hash, "password_changed_at": now}
        )
        return True


class FakeChallengeRepository:
    def __init__(self) -> None:
        self.docs = {}

    async def find_active(self, subject_id, purpose):
        await asyncio.sleep(0)
        for doc in self.docs.values():
            if doc.subject_id == subject_id and doc.purpose == purpose and doc.active:
                return doc.model_copy()
        return None

    async def list_active_for_subject(self, subject_id):
        return [
            d.model_copy()
            for d in self.docs.values()
            if d.subject_id == subject_id and d.active
        ]

    async def has_retired_code(self, subject_id, purpose, code_hash):
        return any(
            d.subject_id == subject_id
            and d.purpose == purpose
            and d.code_hash == code_hash
            and not d.active
            for d in self.docs.values()
        )

    async def replace_active(self, doc, now):
        for key, existing in self.docs.items():
            if (
                existing.subject_id == doc.subject_id
                and existing.purpose == doc.purpose
                and existing.active
            ):
                self.docs[key] = existing.model_copy(
                    update={"active": False, "superseded_at": now}
                )
        stored = doc.model_copy(update={"id": ObjectId()})
        self.docs[stored.id] = stored
        return stored.model_copy()

    async def consume(self, challenge_id, now):
        await asyncio.sleep(0)
        doc = self.docs.get(challenge_id)
        if doc is None or not doc.active:
            return None
        consumed = doc.model_copy(
            update={"active": False, "consumed": True, "consumed_at": now}
        )
        self.docs[challenge_id] = consumed
        return consumed.model_copy()


class FakeAttemptRepository:
    def __init__(self) -> None:
        self.counters = {}

    def _update(self, key, **fields):
        self.counters[key] = self.counters[key].model_copy(update=fields)

    async def reserve(self, subject_id, scope, max_failures, now):
        await asyncio.sleep(0)
        key = (subject_id, scope)
        counter = self.counters.get(key)
        if counter is None:
            self.counters[key] = AttemptCounterDoc(
                subject_id=subject_id, scope=scope, failures=1, updated_at=now
            )
        elif counter.blocked or counter.failures >= max_failures:
            return None
        else:
            self._update(key, failures=counter.failures + 1, updated_at=now)
        return self.counters[key].model_copy()

    async def mark_blocked(self, subject_id, scope, max_failures, blocked_until, now):
        key = (subject_id, scope)
        counter = self.counters.get(key)
        if counter is None or counter.blocked or counter.failures < max_failures:
            return False
        self._update(key, blocked=True, blocked_until=blocked_until, updated_at=now)
        return True

    async def clear_failures(self, subject_id, scope, now):
        key = (subject_id, scope)
        counter = self.counters.get(key)
        if counter is None or counter.blocked:
            return False
        self._update(key, failures=0, updated_at=now)
        return True

    def _clear(self, key, now):
        self._update(key, failures=0, blocked=False, blocked_until=None, updated_at=now)

    async def reset(self, subject_id, scope, now):
        key = (subject_id, scope)
        if key not in self.counters:
            return False
        self._clear(key, now)
        return True

    async def release_expired_block(self, subject_id, scope, now):
        key = (subject_id, scope)
        counter = self.counters.get(key)
        if (
            counter is None
            or not counter.blocked
            or counter.blocked_until is None
            or counter.blocked_until > now
        ):
            return False
        self._clear(key, now)
        return True


class RecordingDelivery:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent = []

    async def send(self, destination, payload):
        self.sent.append((destination, payload))
        return self.succeed

    @property
    def last_code(self):
        return self.sent[-1][1].code


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def user_repo():
    return FakeUserRepository()


@pytest.fixture
def challenge_repo():
    return FakeChallengeRepository()


@pytest.fixture
def attempt_repo():
    return FakeAttemptRepository()


@pytest.fixture
def delivery():
    return RecordingDelivery()


@pytest.fixture
def throttle(attempt_repo, clock):
    return AttemptThrottle(attempt_repo, max_failures=3, cooldown_seconds=900, clock=clock)


@pytest.fixture
def engine(challenge_repo, user_repo, delivery, throttle, clock):
    return ChallengeService(
        challenges=challenge_repo,
        users=user_repo,
        delivery=delivery,
        throttle=throttle,
        ttl_seconds=600,
        clock=clock,
    )


@pytest.fixture
def alice(user_repo):
    """A registered, unverified account."""
    user = UserDoc(email="alice@example.com", password_hash="not-a-real-hash")
    user_repo.users[user.email] = user.model_copy(update={"id": ObjectId()})
    return user.email
