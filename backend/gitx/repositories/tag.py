"""Repository for Tag records."""

from __future__ import annotations

from typing import List

from pymongo import UpdateOne
from pymongo.database import Database

from gitx.entities.tag import Tag

from .base import BaseRepository, store_errors


class TagRepository(BaseRepository[Tag]):
    def __init__(self, db: Database):
        super().__init__(db, "tags", Tag)
        self.collection.create_index(
            [("repository_id", 1), ("name", 1)],
            unique=True,
            background=True,
        )

    def find_by_repository(self, repository_id: int) -> List[Tag]:
        return self.find_many({"repository_id": repository_id}, sort=[("name", 1)])

    def save_many(self, tags: List[Tag]) -> int:
        """Upsert tags by (repository_id, name); a moved tag gets its new target."""
        if not tags:
            return 0

        ops = []
        for tag in tags:
            doc = tag.to_mongo()
            created_at = doc.pop("created_at")
            ops.append(
                UpdateOne(
                    {"repository_id": tag.repository_id, "name": tag.name},
                    {"$set": doc, "$setOnInsert": {"created_at": created_at}},
                    upsert=True,
                )
            )

        with self.write_session() as session:
            with store_errors("saving tags"):
                result = self.collection.bulk_write(ops, ordered=False, session=session)
        return result.upserted_count + result.modified_count
