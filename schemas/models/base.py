"""
Base for the MongoDB document models.

PyObjectId lets Pydantic v2 validate BSON ObjectIds and serialise them as
strings. MongoBaseModel maps `_id` to `id` and converts to and from the raw
dicts pymongo reads and writes.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

DocT = TypeVar("DocT", bound="MongoBaseModel")


class PyObjectId(ObjectId):
    """BSON ObjectId accepted from either an ObjectId or its 24-char hex string."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class MongoBaseModel(BaseModel):
    """Common `_id` handling for the challenge, attempt and user documents."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Dict for insert_one; `_id` is left out until MongoDB assigns one."""
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls: Type[DocT], data: Optional[dict]) -> Optional[DocT]:
        """Validate a raw pymongo document; None (no match) passes through."""
        if data is None:
            return None
        return cls.model_validate(data)
