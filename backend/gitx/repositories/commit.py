"""Repository for indexed Commit rows."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, UpdateOne
from pymongo.database import Database
from pymongo.errors import BulkWriteError

from gitx.entities.commit import Commit
from gitx.services.branch_equivalence import commit_match_key, select_unmatched_commits

from .base import BaseRepository, store_errors

logger = logging.getLogger(__name__)

DUPLICATE_KEY_ERROR = 11000


def _only_duplicate_keys(error: BulkWriteError) -> bool:
    write_errors = error.details.get("writeErrors", [])
    return bool(write_errors) and all(
        e.get("code") == DUPLICATE_KEY_ERROR for e in write_errors
    ) and not error.details.get("writeConcernErrors")


class CommitRepository(BaseRepository[Commit]):
    """
    Commit rows keyed by (repository_id, oid, branch).

    Rows are written once; re-indexing the same range is a no-op.
    """

    def __init__(self, db: Database):
        super().__init__(db, "commits", Commit)
        self.collection.create_index(
            [("repository_id", ASCENDING), ("oid", ASCENDING), ("branch", ASCENDING)],
            unique=True,
            background=True,
        )
        # Cursor lookup
        self.collection.create_index(
            [
                ("repository_id", ASCENDING),
                ("branch", ASCENDING),
                ("author_time", DESCENDING),
            ],
            background=True,
        )
        # Branch diff match
        self.collection.create_index(
            [
                ("repository_id", ASCENDING),
                ("branch", ASCENDING),
                ("author_name", ASCENDING),
                ("summary", ASCENDING),
                ("committer_time", DESCENDING),
            ],
            background=True,
        )
        self.collection.create_index("oid", background=True)

    def get_latest_commit(self, repository_id: int, branch: str) -> Optional[Commit]:
        """Most recently authored stored commit of a branch (the indexing cursor)."""
        found = self.find_many(
            {"repository_id": repository_id, "branch": branch},
            sort=[("author_time", DESCENDING)],
            limit=1,
        )
        return found[0] if found else None

    def find_by_branch(
        self, repository_id: int, branch: str, limit: int = 0
    ) -> List[Commit]:
        return self.find_many(
            {"repository_id": repository_id, "branch": branch},
            sort=[("committer_time", DESCENDING)],
            limit=limit,
        )

    def count_by_repository(
        self, repository_id: int, branch: Optional[str] = None
    ) -> int:
        query: Dict[str, Any] = {"repository_id": repository_id}
        if branch is not None:
            query["branch"] = branch
        return self.count(query)

    def bulk_insert(self, commits: List[Commit]) -> int:
        """
        Insert-or-ignore a batch of commits.

        Rows whose (repository_id, oid, branch) already exist are left
        untouched. Returns the number of rows actually inserted.
        """
        if not commits:
            return 0

        ops = [
            UpdateOne(
                {
                    "repository_id": commit.repository_id,
                    "oid": commit.oid,
                    "branch": commit.branch,
                },
                {"$setOnInsert": commit.to_mongo()},
                upsert=True,
            )
            for commit in commits
        ]

        with self.write_session() as session:
            with store_errors("inserting commits"):
                try:
                    result = self.collection.bulk_write(
                        ops, ordered=False, session=session
                    )
                except BulkWriteError as e:
                    # Concurrent writers racing on the same key
                    if not _only_duplicate_keys(e):
                        raise
                    inserted = e.details.get("nUpserted", 0)
                    logger.debug(
                        f"Ignored {len(e.details['writeErrors'])} duplicate commit rows"
                    )
                    return inserted
        return result.upserted_count

    def save(self, commit: Commit) -> Commit:
        """Insert one commit, or refresh summary and message of the existing row."""
        doc = commit.to_mongo()
        refreshed = {"summary": doc.pop("summary"), "message": doc.pop("message")}
        return self.find_one_and_update(
            {
                "repository_id": commit.repository_id,
                "oid": commit.oid,
                "branch": commit.branch,
            },
            {"$set": refreshed, "$setOnInsert": doc},
            upsert=True,
        )

    def find_diff_commits(
        self,
        repository_id: int,
        old_branch: str,
        new_branch: str,
        limit: Optional[int] = None,
        match_committer_time: bool = False,
    ) -> List[Commit]:
        """
        Commits on `old_branch` with no equivalent on `new_branch`.

        Equivalence is author_name + summary (+ committer_time when
        match_committer_time is set), so rebased or cherry-picked commits with
        a different oid still count as present. Newest committer_time first.
        """
        with store_errors("loading branch diff keys"):
            target_keys = {
                commit_match_key(
                    doc["author_name"],
                    doc["summary"],
                    doc.get("committer_time"),
                    match_committer_time,
                )
                for doc in self.collection.find(
                    {"repository_id": repository_id, "branch": new_branch},
                    {"_id": 0, "author_name": 1, "summary": 1, "committer_time": 1},
                )
            }

        with store_errors("loading branch diff commits"):
            cursor = self.collection.find(
                {"repository_id": repository_id, "branch": old_branch}
            ).sort([("committer_time", DESCENDING)])
            return select_unmatched_commits(
                (Commit(**doc) for doc in cursor),
                target_keys,
                match_committer_time=match_committer_time,
                limit=limit,
            )
