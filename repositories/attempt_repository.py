"""
Persistence for consecutive-failure counters (`attempt-counters` collection).

One document per (subject_id, scope). Counters live in MongoDB, are shared
by every worker and survive restarts.

`failures` counts attempts that were reserved and not yet settled as a
success, so an in-flight attempt already holds one slot of the budget.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from schemas.models.attempt import AttemptCounterDoc

COLLECTION_NAME = "attempt-counters"

_CLEARED = {"failures": 0, "blocked": False, "blocked_until": None}

# One retry absorbs the insert race between two first attempts on a pair.
_RESERVE_TRIES = 2


class AttemptRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION_NAME]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("subject_id", ASCENDING), ("scope", ASCENDING)],
            unique=True,
            name="uniq_subject_scope",
        )

    async def reserve(
        self, subject_id: str, scope: str, max_failures: int, now: datetime
    ) -> Optional[AttemptCounterDoc]:
        """Take one attempt slot, or return None when the pair has none left.

        The match on `blocked: false` and `failures < max_failures` and the
        increment are one write. When the pair's document exists but does not
        match, the upsert collides with the unique index, which means the pair
        is blocked or out of slots.
        """
        for _ in range(_RESERVE_TRIES):
            try:
                raw = await self._col.find_one_and_update(
                    {
                        "subject_id": subject_id,
                        "scope": scope,
                        "blocked": False,
                        "failures": {"$lt": max_failures},
                    },
                    {
                        "$inc": {"failures": 1},
                        "$set": {"updated_at": now},
                        "$setOnInsert": {"blocked_until": None},
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                continue
            return AttemptCounterDoc.from_mongo(raw)
        return None

    async def mark_blocked(
        self,
        subject_id: str,
        scope: str,
        max_failures: int,
        blocked_until: Optional[datetime],
        now: datetime,
    ) -> bool:
        """Block the pair if it still holds max_failures unsettled attempts."""
        result = await self._col.update_one(
            {
                "subject_id": subject_id,
                "scope": scope,
                "blocked": False,
                "failures": {"$gte": max_failures},
            },
            {
                "$set": {
                    "blocked": True,
                    "blocked_until": blocked_until,
                    "updated_at": now,
                }
            },
        )
        return result.modified_count == 1

    async def clear_failures(self, subject_id: str, scope: str, now: datetime) -> bool:
        """Zero the count after a success. A block that is already set stays."""
        result = await self._col.update_one(
            {"subject_id": subject_id, "scope": scope, "blocked": False},
            {"$set": {"failures": 0, "updated_at": now}},
        )
        return result.modified_count == 1

    async def reset(self, subject_id: str, scope: str, now: datetime) -> bool:
        """Unconditional clear, blocks included."""
        result = await self._col.update_one(
            {"subject_id": subject_id, "scope": scope},
            {"$set": {**_CLEARED, "updated_at": now}},
        )
        return result.modified_count == 1

    async def release_expired_block(
        self, subject_id: str, scope: str, now: datetime
    ) -> bool:
        """Clear a block whose cool-down has elapsed. Permanent blocks stay."""
        result = await self._col.update_one(
            {
                "subject_id": subject_id,
                "scope": scope,
                "blocked": True,
                "blocked_until": {"$ne": None, "$lte": now},
            },
            {"$set": {**_CLEARED, "updated_at": now}},
        )
        return result.modified_count == 1
