"""
Index Worker - one incremental indexing pass over a repository.

A pass persists every remote-tracking branch tip first, then walks each
branch from its stored cursor and bulk-inserts the new commits. Branches
fail independently; store failures abort the pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from gitx.core.tracing import TracingContext
from gitx.entities.branch import Branch
from gitx.entities.commit import Commit
from gitx.entities.tag import Tag
from gitx.repositories.branch import BranchRepository
from gitx.repositories.commit import CommitRepository
from gitx.repositories.tag import TagRepository
from gitx.services.branch_equivalence import short_branch_name
from gitx.services.indexing_exceptions import VcsError
from gitx.services.vcs.base import BranchRecord, CommitRecord, VcsAccessor
from gitx.utils.datetime import from_epoch

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    commits_indexed: int = 0
    branches_indexed: int = 0
    branches_failed: int = 0
    tags_indexed: int = 0


def to_commit_entity(repository_id: int, branch: str, record: CommitRecord) -> Commit:
    return Commit(
        repository_id=repository_id,
        oid=record.oid,
        branch=branch,
        author_name=record.author_name,
        author_email=record.author_email,
        author_time=from_epoch(record.author_time),
        committer_name=record.committer_name,
        committer_email=record.committer_email,
        committer_time=from_epoch(record.committer_time),
        summary=record.summary,
        message=record.message or None,
        parent_oids=list(record.parent_oids),
    )


class IndexWorker:
    def __init__(
        self,
        vcs: VcsAccessor,
        branch_repo: BranchRepository,
        commit_repo: CommitRepository,
        tag_repo: Optional[TagRepository] = None,
        max_commits_per_branch: int = 2000,
        remote_name: str = "origin",
        index_tags: bool = True,
        prune_stale_branches: bool = False,
    ):
        self.vcs = vcs
        self.branch_repo = branch_repo
        self.commit_repo = commit_repo
        self.tag_repo = tag_repo
        self.max_commits_per_branch = max_commits_per_branch
        self.remote_name = remote_name
        self.index_tags = index_tags
        self.prune_stale_branches = prune_stale_branches

    def index_repository(
        self, repository_id: int, path: str, default_branch: str = "main"
    ) -> IndexResult:
        """
        Run one pass over the repository at `path`.

        Raises:
            VcsError: branches could not be listed at all
            StoreError: a write failed; nothing after it was attempted
        """
        result = IndexResult()

        records = self.vcs.list_branches(path)
        logger.info(f"Found {len(records)} remote branches in {path}")

        self._save_branches(repository_id, records, default_branch)

        if self.index_tags and self.tag_repo is not None:
            result.tags_indexed = self._index_tags(repository_id, path)

        prefix = f"{self.remote_name}/"
        for record in records:
            if not record.name.startswith(prefix):
                continue

            TracingContext.set(branch=record.name)
            try:
                inserted = self.index_branch(repository_id, path, record.name)
                result.commits_indexed += inserted
                result.branches_indexed += 1
            except VcsError as e:
                logger.error(f"Failed to index branch {record.name} in {path}: {e}")
                result.branches_failed += 1
            finally:
                TracingContext.clear_branch()

        logger.info(
            f"Indexed {path}: {result.commits_indexed} commits, "
            f"{result.branches_indexed} branches ({result.branches_failed} failed), "
            f"{result.tags_indexed} tags"
        )
        return result

    def index_branch(self, repository_id: int, path: str, branch_name: str) -> int:
        """Index the commits of one remote branch added since its cursor."""
        short_name = short_branch_name(branch_name, self.remote_name)
        cursor = self.commit_repo.get_latest_commit(repository_id, short_name)

        records = self.vcs.get_commits(
            path,
            branch_name,
            self.max_commits_per_branch,
            since_oid=cursor.oid if cursor else None,
        )
        if not records:
            logger.debug(f"No new commits on {branch_name}")
            return 0

        commits = [
            to_commit_entity(repository_id, short_name, record)
            for record in records
            if not record.is_merge
        ]
        inserted = self.commit_repo.bulk_insert(commits)
        logger.info(
            f"Indexed {inserted} new commits on {branch_name} "
            f"({len(commits) - inserted} already stored)"
        )
        return inserted

    def _default_branch_name(
        self, records: List[BranchRecord], default_branch: str
    ) -> Optional[str]:
        """The configured default branch if listed, else the checked-out one."""
        for record in records:
            if short_branch_name(record.name, self.remote_name) == default_branch:
                return record.name
        for record in records:
            if record.is_head:
                return record.name
        return None

    def _save_branches(
        self, repository_id: int, records: List[BranchRecord], default_branch: str
    ) -> None:
        default_name = self._default_branch_name(records, default_branch)
        branches = [
            Branch(
                repository_id=repository_id,
                name=record.name,
                target_oid=record.target_oid,
                is_default=record.name == default_name,
            )
            for record in records
        ]
        self.branch_repo.save_many(branches)

        if self.prune_stale_branches:
            removed = self.branch_repo.delete_stale(
                repository_id, [b.name for b in branches]
            )
            if removed:
                logger.info(f"Pruned {removed} stale branches of repository {repository_id}")

    def _index_tags(self, repository_id: int, path: str) -> int:
        try:
            records = self.vcs.list_tags(path)
        except VcsError as e:
            logger.warning(f"Failed to list tags in {path}: {e}")
            return 0

        tags = [
            Tag(
                repository_id=repository_id,
                name=record.name,
                target_oid=record.target_oid,
                tagger_name=record.tagger_name,
                tagger_email=record.tagger_email,
                tagger_time=from_epoch(record.tagger_time),
                message=record.message,
            )
            for record in records
        ]
        self.tag_repo.save_many(tags)
        return len(tags)
