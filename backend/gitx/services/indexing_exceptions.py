"""Custom exceptions for discovery, indexing and persistence."""

from __future__ import annotations


class GitxError(Exception):
    """Base exception for indexing failures."""


class VcsError(GitxError):
    """Raised when the VCS backend fails (remote, auth, path or ref resolution)."""


class ReferenceNotFoundError(VcsError):
    """Raised when a ref or object id does not resolve in the repository."""

    def __init__(self, ref: str, path: str | None = None):
        where = f" in {path}" if path else ""
        super().__init__(f"Reference not found: {ref}{where}")
        self.ref = ref
        self.path = path


class FetchTimeoutError(GitxError, TimeoutError):
    """Raised when a fetch exceeds its time budget and the git process is killed."""

    def __init__(self, path: str, timeout: float):
        super().__init__(f"Fetch of {path} exceeded {timeout}s")
        self.path = path
        self.timeout = timeout


class StoreError(GitxError):
    """Raised when a persistence operation fails."""


class RepositoryNotFoundError(GitxError):
    """Raised when a repository id is unknown to the store."""

    def __init__(self, repository_id: int | str):
        super().__init__(f"Repository not found: {repository_id}")
        self.repository_id = repository_id


class RepositoryTaskFailure(GitxError):
    """
    Raised when one repository's task in an indexing cycle fails.

    Wraps whatever the task raised so the scheduler can count and log it
    without letting it escape the cycle.
    """

    def __init__(self, repository_name: str, cause: BaseException):
        super().__init__(f"Indexing task for {repository_name} failed: {cause!r}")
        self.repository_name = repository_name
        self.cause = cause
