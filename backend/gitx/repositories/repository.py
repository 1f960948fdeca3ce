"""Repository for mirrored Repository records."""

from __future__ import annotations

from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from gitx.entities.repository import Repository
from gitx.utils.datetime import utc_now

from .base import BaseRepository, store_errors

COUNTERS_COLLECTION = "counters"


class RepositoryRepository(BaseRepository[Repository]):
    """Repository records keyed by canonical path, with store-assigned integer ids."""

    def __init__(self, db: Database):
        super().__init__(db, "repositories", Repository)
        self.collection.create_index("path", unique=True, background=True)

    def _next_id(self) -> int:
        with store_errors("allocating repository id"):
            doc = self.db[COUNTERS_COLLECTION].find_one_and_update(
                {"_id": self.collection_name},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return int(doc["seq"])

    def find_by_path(self, path: str) -> Optional[Repository]:
        return self.find_one({"path": path})

    def find_by_id(self, repository_id: int) -> Optional[Repository]:
        return self.find_one({"_id": int(repository_id)})

    def list_all(self) -> List[Repository]:
        return self.find_many({}, sort=[("name", 1)])

    def save(self, repository: Repository) -> Repository:
        """
        Insert or update by path.

        An existing row keeps its id and created_at; name, description,
        default_branch and sync times are overwritten from `repository`.
        """
        existing = self.find_by_path(repository.path)
        repository_id = existing.id if existing else self._next_id()

        now = utc_now()
        saved = self.find_one_and_update(
            {"path": repository.path},
            {
                "$set": {
                    "name": repository.name,
                    "description": repository.description,
                    "default_branch": repository.default_branch,
                    "last_synced_at": repository.last_synced_at,
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "_id": repository_id,
                    "path": repository.path,
                    "created_at": repository.created_at,
                },
            },
            upsert=True,
        )
        return saved

    def update_sync_time(self, repository_id: int) -> bool:
        now = utc_now()
        return self.update_one(
            int(repository_id),
            {"last_synced_at": now, "updated_at": now},
        )
