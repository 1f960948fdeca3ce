"""
Branch equivalence: which commits of one branch are missing from another.

Rebased and cherry-picked commits get new oids, so presence is decided by a
heuristic key (author name + summary, optionally committer time) over the
indexed rows. A second pass asks git itself (`git cherry`) which of those
commits already have a patch-equivalent commit upstream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Set, Tuple

from gitx.services.indexing_exceptions import VcsError
from gitx.utils.datetime import ensure_aware_utc

if TYPE_CHECKING:
    from gitx.entities.commit import Commit
    from gitx.entities.repository import Repository
    from gitx.repositories.commit import CommitRepository
    from gitx.services.vcs.base import VcsAccessor

logger = logging.getLogger(__name__)

MatchKey = Tuple[Any, ...]


def short_branch_name(name: str, remote: str = "origin") -> str:
    """`origin/feature/x` -> `feature/x`; names without the prefix are unchanged."""
    prefix = f"{remote}/"
    return name[len(prefix):] if name.startswith(prefix) else name


def commit_match_key(
    author_name: str,
    summary: str,
    committer_time: Optional[datetime] = None,
    match_committer_time: bool = False,
) -> MatchKey:
    if match_committer_time:
        return (author_name, summary, ensure_aware_utc(committer_time))
    return (author_name, summary)


def select_unmatched_commits(
    source: Iterable[Any],
    target_keys: Set[MatchKey],
    match_committer_time: bool = False,
    limit: Optional[int] = None,
) -> List[Any]:
    """
    Keep the commits of `source` whose match key is not in `target_keys`.

    `source` order is preserved; at most `limit` commits are returned.
    """
    unmatched = []
    for commit in source:
        key = commit_match_key(
            commit.author_name,
            commit.summary,
            commit.committer_time,
            match_committer_time,
        )
        if key in target_keys:
            continue
        unmatched.append(commit)
        if limit and len(unmatched) >= limit:
            break
    return unmatched


@dataclass
class ComparisonEntry:
    commit: "Commit"
    already_applied: bool = False


@dataclass
class BranchComparison:
    repository_id: int
    source_branch: str
    target_branch: str
    entries: List[ComparisonEntry] = field(default_factory=list)

    @property
    def pending(self) -> List["Commit"]:
        return [e.commit for e in self.entries if not e.already_applied]


def _oid_matches(oid: str, applied: Set[str]) -> bool:
    if oid in applied:
        return True
    return any(oid.startswith(a) or a.startswith(oid) for a in applied)


class BranchEquivalenceResolver:
    """Commits present on a source branch but not yet on a target branch."""

    def __init__(
        self,
        commit_repo: "CommitRepository",
        vcs: "VcsAccessor",
        remote_name: str = "origin",
        match_committer_time: bool = False,
        default_limit: int = 1000,
    ):
        self.commit_repo = commit_repo
        self.vcs = vcs
        self.remote_name = remote_name
        self.match_committer_time = match_committer_time
        self.default_limit = default_limit

    def compare(
        self,
        repository: "Repository",
        source_branch: str,
        target_branch: str,
        limit: Optional[int] = None,
    ) -> BranchComparison:
        source = short_branch_name(source_branch, self.remote_name)
        target = short_branch_name(target_branch, self.remote_name)

        commits = self.commit_repo.find_diff_commits(
            repository.id,
            source,
            target,
            limit=limit or self.default_limit,
            match_committer_time=self.match_committer_time,
        )
        comparison = BranchComparison(
            repository_id=repository.id,
            source_branch=source,
            target_branch=target,
            entries=[ComparisonEntry(commit=c) for c in commits],
        )
        if not comparison.entries:
            return comparison

        try:
            cherry = self.vcs.get_cherry_status(
                repository.path,
                f"{self.remote_name}/{target}",
                f"{self.remote_name}/{source}",
            )
        except VcsError as e:
            logger.warning(
                f"git cherry failed for {repository.name} {source} -> {target}: {e}"
            )
            return comparison

        applied = {entry.oid for entry in cherry if entry.applied}
        if applied:
            for entry in comparison.entries:
                entry.already_applied = _oid_matches(entry.commit.oid, applied)

        logger.debug(
            f"{repository.name}: {len(comparison.entries)} commits on {source} "
            f"not on {target}, {len(comparison.entries) - len(comparison.pending)} "
            f"already applied"
        )
        return comparison
