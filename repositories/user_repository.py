"""
Account store (`users` collection).

Used by the auth flows; the challenge engine only reads from it to resolve
the subject and its delivery address.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase

from schemas.models.user import UserDoc

COLLECTION_NAME = "users"


class UserRepository:
    def __init__(self, db: AsyncDatabase) -> None:
        self._col = db[COLLECTION_NAME]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        raw = await self._col.find_one({"email": email})
        return UserDoc.from_mongo(raw)

    async def create(self, user: UserDoc) -> ObjectId:
        """Insert *user*. Raises DuplicateKeyError when the email is taken."""
        result = await self._col.insert_one(user.to_mongo())
        return result.inserted_id

    async def mark_verified(self, email: str, now: datetime) -> bool:
        result = await self._col.update_one(
            {"email": email},
            {"$set": {"email_verified": True, "verified_at": now, "updated_at": now}},
        )
        return result.matched_count == 1

    async def update_password_hash(
        self, email: str, password_hash: str, now: datetime
    ) -> bool:
        result = await self._col.update_one(
            {"email": email},
            {
                "$set": {
                    "password_hash": password_hash,
                    "password_changed_at": now,
                    "updated_at": now,
                }
            },
        )
        return result.matched_count == 1
