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
from .gitpython_accessor import GitPythonAccessor

__all__ = [
    "VcsAccessor",
    "GitPythonAccessor",
    "CommitRecord",
    "BranchRecord",
    "TagRecord",
    "CommitDetail",
    "DiffStats",
    "Diff",
    "FileChange",
    "FetchResult",
    "CherryEntry",
]
