"""
VCS Accessor - the capability interface the indexer needs from a VCS backend.

Every operation is blocking; the scheduler runs them on worker threads.
Timestamps are seconds since the epoch, as the VCS reports them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CommitRecord:
    oid: str
    author_name: str
    author_email: str
    author_time: int
    committer_name: str
    committer_email: str
    committer_time: int
    summary: str
    message: str
    parent_oids: List[str] = field(default_factory=list)

    @property
    def is_merge(self) -> bool:
        return len(self.parent_oids) > 1


@dataclass
class BranchRecord:
    name: str
    target_oid: str
    is_head: bool = False


@dataclass
class TagRecord:
    name: str
    target_oid: str
    tagger_name: Optional[str] = None
    tagger_email: Optional[str] = None
    tagger_time: Optional[int] = None
    message: Optional[str] = None


@dataclass
class DiffStats:
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    def summary_line(self) -> str:
        return (
            f"{self.files_changed} files changed, "
            f"{self.insertions} insertions(+), "
            f"{self.deletions} deletions(-)"
        )


@dataclass
class CommitDetail:
    commit: CommitRecord
    stats: DiffStats
    diff_stats: str
    diff_html: str
    diff_plain: bytes


@dataclass
class FileChange:
    path: str
    change_type: str  # added | modified | deleted | renamed
    insertions: int = 0
    deletions: int = 0
    old_path: Optional[str] = None


@dataclass
class Diff:
    stats: DiffStats
    files: List[FileChange] = field(default_factory=list)


@dataclass
class FetchResult:
    """Remote-tracking branch names whose tip moved (or appeared) in the fetch."""

    branches_updated: List[str] = field(default_factory=list)


@dataclass
class CherryEntry:
    oid: str
    applied: bool


class VcsAccessor(ABC):
    """
    Read access to local repositories plus remote fetch.

    Implementations raise VcsError (or a subclass) for backend failures and
    FetchTimeoutError when a fetch is killed for exceeding its timeout.
    """

    @abstractmethod
    def fetch_repository(
        self, path: str, timeout: Optional[float] = None
    ) -> FetchResult:
        """Fetch every ref of the configured remote."""

    @abstractmethod
    def get_commits(
        self,
        path: str,
        ref: str,
        limit: int,
        since_oid: Optional[str] = None,
    ) -> List[CommitRecord]:
        """
        Non-merge commits reachable from `ref`, newest first.

        With `since_oid`, only commits not reachable from it are returned.
        """

    @abstractmethod
    def list_branches(self, path: str) -> List[BranchRecord]:
        """Remote-tracking branches, excluding the symbolic <remote>/HEAD."""

    @abstractmethod
    def list_tags(self, path: str) -> List[TagRecord]:
        pass

    @abstractmethod
    def get_commit_detail(self, path: str, oid: str) -> CommitDetail:
        """Commit metadata plus its patch against the first parent."""

    @abstractmethod
    def compare_commits(self, path: str, from_oid: str, to_oid: str) -> Diff:
        pass

    @abstractmethod
    def get_branch_diff_commits(
        self, path: str, old_ref: str, new_ref: str, limit: int
    ) -> List[CommitRecord]:
        """Non-merge commits in `old_ref..new_ref`, newest first."""

    @abstractmethod
    def get_cherry_status(
        self, path: str, upstream: str, head: str
    ) -> List[CherryEntry]:
        """
        For each commit in `upstream..head`, whether a patch-equivalent
        commit already exists in `upstream`.
        """
