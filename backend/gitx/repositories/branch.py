"""Repository for Branch tips."""

from __future__ import annotations

from typing import Iterable, List

from pymongo import UpdateOne
from pymongo.database import Database

from gitx.entities.branch import Branch
from gitx.utils.datetime import utc_now

from .base import BaseRepository, store_errors


class BranchRepository(BaseRepository[Branch]):
    def __init__(self, db: Database):
        super().__init__(db, "branches", Branch)
        self.collection.create_index(
            [("repository_id", 1), ("name", 1)],
            unique=True,
            background=True,
        )

    def find_by_repository(self, repository_id: int) -> List[Branch]:
        return self.find_many({"repository_id": repository_id}, sort=[("name", 1)])

    def save_many(self, branches: List[Branch]) -> int:
        """
        Upsert every branch of one pass in a single batch.

        Returns the number of rows inserted or modified.
        """
        if not branches:
            return 0

        now = utc_now()
        ops = [
            UpdateOne(
                {"repository_id": branch.repository_id, "name": branch.name},
                {
                    "$set": {
                        "target_oid": branch.target_oid,
                        "is_default": branch.is_default,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": branch.created_at},
                },
                upsert=True,
            )
            for branch in branches
        ]

        with self.write_session() as session:
            with store_errors("saving branches"):
                result = self.collection.bulk_write(ops, ordered=False, session=session)
        return result.upserted_count + result.modified_count

    def delete_stale(self, repository_id: int, keep_names: Iterable[str]) -> int:
        """Delete branch rows of a repository whose name is not in keep_names."""
        return self.delete_many(
            {"repository_id": repository_id, "name": {"$nin": list(keep_names)}}
        )
