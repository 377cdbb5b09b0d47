"""
Persistence for one-time challenges (`otp-challenges` collection).

Every state change is a single conditional write keyed on `active: true`.
There is no global lock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from schemas.models.challenge import ChallengeDoc, ChallengePurpose
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION_NAME = "otp-challenges"

# Concurrent issuers for the same pair race on the partial unique index;
# each retry supersedes whatever the winner inserted.
_MAX_REPLACE_ATTEMPTS = 5


class ChallengeRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION_NAME]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("subject_id", ASCENDING), ("purpose", ASCENDING)],
            unique=True,
            partialFilterExpression={"active": True},
            name="uniq_active_challenge",
        )
        await self._col.create_index(
            [
                ("subject_id", ASCENDING),
                ("purpose", ASCENDING),
                ("code_hash", ASCENDING),
            ]
        )

    async def find_active(
        self, subject_id: str, purpose: ChallengePurpose
    ) -> Optional[ChallengeDoc]:
        raw = await self._col.find_one(
            {"subject_id": subject_id, "purpose": purpose.value, "active": True}
        )
        return ChallengeDoc.from_mongo(raw)

    async def list_active_for_subject(self, subject_id: str) -> list[ChallengeDoc]:
        cursor = self._col.find({"subject_id": subject_id, "active": True})
        return [ChallengeDoc.from_mongo(raw) async for raw in cursor]

    async def has_retired_code(
        self, subject_id: str, purpose: ChallengePurpose, code_hash: str
    ) -> bool:
        """True if *code_hash* belonged to a consumed or superseded challenge of the pair."""
        raw = await self._col.find_one(
            {
                "subject_id": subject_id,
                "purpose": purpose.value,
                "code_hash": code_hash,
                "active": False,
            },
            projection={"_id": 1},
        )
        return raw is not None

    async def replace_active(self, doc: ChallengeDoc, now: datetime) -> ChallengeDoc:
        """Supersede the active challenge for doc's pair and insert *doc*.

        Returns the stored document with its generated `_id`.
        """
        pair = {"subject_id": doc.subject_id, "purpose": doc.purpose.value}
        attempt = 0
        while True:
            attempt += 1
            superseded = await self._col.update_many(
                {**pair, "active": True},
                {"$set": {"active": False, "superseded_at": now}},
            )
            try:
                result = await self._col.insert_one(doc.to_mongo())
            except DuplicateKeyError:
                log.warning(
                    "challenge_insert_conflict",
                    subject_id=doc.subject_id,
                    purpose=doc.purpose.value,
                    attempt=attempt,
                )
                if attempt >= _MAX_REPLACE_ATTEMPTS:
                    raise
                continue

            if superseded.modified_count:
                log.info(
                    "challenge_superseded",
                    subject_id=doc.subject_id,
                    purpose=doc.purpose.value,
                    count=superseded.modified_count,
                )
            return doc.model_copy(update={"id": result.inserted_id})

    async def consume(
        self, challenge_id: ObjectId, now: datetime
    ) -> Optional[ChallengeDoc]:
        """Atomically flip an active challenge to consumed.

        Returns the updated document, or None when the challenge was already
        consumed or superseded by the time the write landed.
        """
        raw = await self._col.find_one_and_update(
            {"_id": challenge_id, "active": True},
            {"$set": {"active": False, "consumed": True, "consumed_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return ChallengeDoc.from_mongo(raw)
