"""Base classes shared by all stored entities."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from gitx.utils.datetime import ensure_aware_utc, utc_now


def validate_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a valid id string/ObjectId, else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _coerce_object_id(value: Any) -> Any:
    oid = validate_object_id(value)
    return oid if oid is not None else value


PyObjectId = Annotated[ObjectId, BeforeValidator(_coerce_object_id)]


class BaseEntity(BaseModel):
    """
    Base for MongoDB documents.

    `id` maps to `_id`. Datetimes are normalized to aware UTC so values read
    back from PyMongo compare equal to the ones that were written.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(None, alias="_id")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return ensure_aware_utc(value)
        return value

    def to_mongo(self) -> Dict[str, Any]:
        """Document form; an unset id is left for the store to assign."""
        data = self.model_dump(by_alias=True)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data
