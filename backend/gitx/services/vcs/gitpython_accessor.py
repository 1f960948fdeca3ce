"""
GitPython implementation of the VCS accessor.

Object access (commits, refs, tags) goes through GitPython's object model;
range walks, patches and cherry classification go through `repo.git.*` so the
output is exactly what the git CLI prints.
"""

from __future__ import annotations

import html
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

from git import Repo
from git.exc import (
    BadName,
    BadObject,
    GitCommandError,
    InvalidGitRepositoryError,
    NoSuchPathError,
)
from git.objects import Commit as GitCommit
from git.refs import RemoteReference
from git.remote import FetchInfo, RemoteProgress

from gitx.services.indexing_exceptions import (
    FetchTimeoutError,
    ReferenceNotFoundError,
    VcsError,
)

from .base import (
    BranchRecord,
    CherryEntry,
    CommitDetail,
    CommitRecord,
    Diff,
    DiffStats,
    FetchResult,
    FileChange,
    TagRecord,
    VcsAccessor,
)

logger = logging.getLogger(__name__)

# Well-known id of the empty tree; diff base for root commits
EMPTY_TREE_OID = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

CHANGE_TYPES = {"A": "added", "D": "deleted", "R": "renamed"}


class LoggingProgress(RemoteProgress):
    """Reports fetch progress as debug log lines."""

    def __init__(self, path: str):
        super().__init__()
        self.path = path

    def update(self, op_code, cur_count, max_count=None, message=""):
        if max_count:
            logger.debug(
                f"[{self.path}] op {op_code & self.OP_MASK}: "
                f"{int(cur_count)}/{int(max_count)} {message}".rstrip()
            )
        else:
            logger.debug(f"[{self.path}] op {op_code & self.OP_MASK}: {message}".rstrip())


def render_diff_html(patch: str) -> str:
    """Escape a unified patch and wrap added, removed and context lines in spans."""
    rendered = []
    for line in patch.splitlines(keepends=True):
        escaped = html.escape(line, quote=False)
        if line.startswith("+") and not line.startswith("+++"):
            rendered.append(f'<span class="diff-add-line">{escaped}</span>')
        elif line.startswith("-") and not line.startswith("---"):
            rendered.append(f'<span class="diff-remove-line">{escaped}</span>')
        elif line.startswith(" "):
            rendered.append(f'<span class="diff-context">{escaped}</span>')
        else:
            rendered.append(escaped)
    return "".join(rendered)


def parse_numstat(output: str) -> Dict[str, Tuple[int, int]]:
    """
    Parse `git diff --numstat -z` output into {path: (insertions, deletions)}.

    Renamed entries are keyed by their new path; binary files count as 0/0.
    """
    counts: Dict[str, Tuple[int, int]] = {}
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        entry = tokens[i]
        if not entry.strip():
            i += 1
            continue
        added, deleted, path = entry.strip("\n").split("\t", 2)
        if path:
            i += 1
        else:
            path = tokens[i + 2]
            i += 3
        counts[path] = (
            int(added) if added.isdigit() else 0,
            int(deleted) if deleted.isdigit() else 0,
        )
    return counts


def parse_name_status(output: str) -> List[Tuple[str, str, Optional[str]]]:
    """Parse `git diff --name-status -z` output into (status, path, old_path)."""
    changes = []
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        status = tokens[i].strip("\n")
        if not status:
            i += 1
            continue
        if status[0] in ("R", "C"):
            changes.append((status[0], tokens[i + 2], tokens[i + 1]))
            i += 3
        else:
            changes.append((status[0], tokens[i + 1], None))
            i += 2
    return changes


class GitPythonAccessor(VcsAccessor):
    """VCS accessor over local checkouts, using GitPython."""

    def __init__(
        self,
        remote_name: str = "origin",
        ssh_key_path: Optional[Path] = None,
        fetch_timeout: Optional[float] = None,
    ):
        self.remote_name = remote_name
        self.ssh_key_path = ssh_key_path
        self.fetch_timeout = fetch_timeout

    @contextmanager
    def _open(self, path: str) -> Generator[Repo, None, None]:
        try:
            repo = Repo(path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise VcsError(f"Not a git repository: {path}") from e
        try:
            yield repo
        except GitCommandError as e:
            raise VcsError(f"git command failed in {path}: {e}") from e
        finally:
            repo.close()

    def _resolve_commit(self, repo: Repo, rev: str, path: str) -> GitCommit:
        try:
            return repo.commit(rev)
        except (BadName, BadObject, ValueError) as e:
            raise ReferenceNotFoundError(rev, path) from e

    def _ssh_environment(self) -> Dict[str, str]:
        if self.ssh_key_path is None:
            return {}
        key = Path(self.ssh_key_path).expanduser()
        if not key.is_file():
            logger.debug(f"SSH key {key} not found, using default git credentials")
            return {}
        return {
            "GIT_SSH_COMMAND": (
                f"ssh -i {key} -o IdentitiesOnly=yes "
                f"-o StrictHostKeyChecking=accept-new"
            )
        }

    @staticmethod
    def _to_record(commit: GitCommit) -> CommitRecord:
        message = commit.message
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        summary = message.split("\n", 1)[0].strip()
        return CommitRecord(
            oid=commit.hexsha,
            author_name=commit.author.name or "",
            author_email=commit.author.email or "",
            author_time=commit.authored_date,
            committer_name=commit.committer.name or "",
            committer_email=commit.committer.email or "",
            committer_time=commit.committed_date,
            summary=summary,
            message=message,
            parent_oids=[parent.hexsha for parent in commit.parents],
        )

    def fetch_repository(
        self, path: str, timeout: Optional[float] = None
    ) -> FetchResult:
        timeout = timeout if timeout is not None else self.fetch_timeout

        with self._open(path) as repo:
            try:
                remote = repo.remote(self.remote_name)
            except ValueError as e:
                raise VcsError(
                    f"Remote {self.remote_name} not configured in {path}"
                ) from e

            started = time.monotonic()
            try:
                with repo.git.custom_environment(**self._ssh_environment()):
                    infos = remote.fetch(
                        progress=LoggingProgress(path),
                        kill_after_timeout=timeout,
                    )
            except GitCommandError as e:
                if timeout is not None and time.monotonic() - started >= timeout:
                    raise FetchTimeoutError(path, timeout) from e
                raise VcsError(f"Fetch failed for {path}: {e}") from e

        updated = [
            info.name
            for info in infos
            if isinstance(info.ref, RemoteReference)
            and not info.flags & (FetchInfo.HEAD_UPTODATE | FetchInfo.ERROR)
        ]
        return FetchResult(branches_updated=updated)

    def get_commits(
        self,
        path: str,
        ref: str,
        limit: int,
        since_oid: Optional[str] = None,
    ) -> List[CommitRecord]:
        with self._open(path) as repo:
            self._resolve_commit(repo, ref, path)

            rev = ref
            if since_oid:
                try:
                    repo.commit(since_oid)
                    rev = f"{since_oid}..{ref}"
                except (BadName, BadObject, ValueError):
                    logger.warning(
                        f"Cursor {since_oid} not found in {path}, walking {ref} from its tip"
                    )

            kwargs = {"no_merges": True, "date_order": True}
            if limit and limit > 0:
                kwargs["max_count"] = limit
            return [self._to_record(c) for c in repo.iter_commits(rev, **kwargs)]

    def list_branches(self, path: str) -> List[BranchRecord]:
        with self._open(path) as repo:
            tracked = None
            if not repo.head.is_detached:
                try:
                    tracking = repo.active_branch.tracking_branch()
                    tracked = tracking.name if tracking else None
                except (TypeError, ValueError):
                    tracked = None

            branches = []
            for ref in repo.references:
                if not isinstance(ref, RemoteReference) or ref.remote_head == "HEAD":
                    continue
                try:
                    target = ref.commit.hexsha
                except (BadName, BadObject, ValueError) as e:
                    logger.warning(f"Skipping branch {ref.name} in {path}: {e}")
                    continue
                branches.append(
                    BranchRecord(
                        name=ref.name,
                        target_oid=target,
                        is_head=ref.name == tracked,
                    )
                )
            return branches

    def list_tags(self, path: str) -> List[TagRecord]:
        with self._open(path) as repo:
            tags = []
            for tag in repo.tags:
                try:
                    target = tag.commit.hexsha
                except (BadName, BadObject, ValueError) as e:
                    logger.warning(f"Skipping tag {tag.name} in {path}: {e}")
                    continue

                record = TagRecord(name=tag.name, target_oid=target)
                annotated = tag.tag
                if annotated is not None:
                    if annotated.tagger is not None:
                        record.tagger_name = annotated.tagger.name
                        record.tagger_email = annotated.tagger.email
                    record.tagger_time = annotated.tagged_date
                    record.message = annotated.message
                tags.append(record)
            return tags

    def _diff_stats(
        self, repo: Repo, base: str, head: str
    ) -> Tuple[DiffStats, Dict[str, Tuple[int, int]]]:
        counts = parse_numstat(repo.git.diff("--numstat", "-z", "-M", base, head))
        stats = DiffStats(
            files_changed=len(counts),
            insertions=sum(added for added, _ in counts.values()),
            deletions=sum(deleted for _, deleted in counts.values()),
        )
        return stats, counts

    def get_commit_detail(self, path: str, oid: str) -> CommitDetail:
        with self._open(path) as repo:
            commit = self._resolve_commit(repo, oid, path)
            base = commit.parents[0].hexsha if commit.parents else EMPTY_TREE_OID

            patch = repo.git.diff(
                "-M",
                base,
                commit.hexsha,
                stdout_as_string=False,
                strip_newline_in_stdout=False,
            )
            stats, _ = self._diff_stats(repo, base, commit.hexsha)

            return CommitDetail(
                commit=self._to_record(commit),
                stats=stats,
                diff_stats=stats.summary_line(),
                diff_html=render_diff_html(patch.decode("utf-8", errors="replace")),
                diff_plain=patch,
            )

    def compare_commits(self, path: str, from_oid: str, to_oid: str) -> Diff:
        with self._open(path) as repo:
            base = self._resolve_commit(repo, from_oid, path).hexsha
            head = self._resolve_commit(repo, to_oid, path).hexsha

            stats, counts = self._diff_stats(repo, base, head)
            files = []
            for status, file_path, old_path in parse_name_status(
                repo.git.diff("--name-status", "-z", "-M", base, head)
            ):
                added, deleted = counts.get(file_path, (0, 0))
                files.append(
                    FileChange(
                        path=file_path,
                        change_type=CHANGE_TYPES.get(status, "modified"),
                        insertions=added,
                        deletions=deleted,
                        old_path=old_path,
                    )
                )
            return Diff(stats=stats, files=files)

    def get_branch_diff_commits(
        self, path: str, old_ref: str, new_ref: str, limit: int
    ) -> List[CommitRecord]:
        with self._open(path) as repo:
            for ref in (old_ref, new_ref):
                self._resolve_commit(repo, ref, path)

            output = repo.git.log(
                f"{old_ref}..{new_ref}",
                "--no-merges",
                f"--max-count={limit}",
                "--format=%H",
            )
            return [
                self._to_record(repo.commit(oid.strip()))
                for oid in output.splitlines()
                if oid.strip()
            ]

    def get_cherry_status(
        self, path: str, upstream: str, head: str
    ) -> List[CherryEntry]:
        with self._open(path) as repo:
            for ref in (upstream, head):
                self._resolve_commit(repo, ref, path)

            entries = []
            for line in repo.git.cherry(upstream, head).splitlines():
                marker, _, oid = line.strip().partition(" ")
                if not oid:
                    continue
                entries.append(CherryEntry(oid=oid.strip(), applied=marker == "-"))
            return entries
