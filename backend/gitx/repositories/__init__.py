"""Repository layer for database operations"""

from .base import BaseRepository
from .branch import BranchRepository
from .commit import CommitRepository
from .repository import RepositoryRepository
from .tag import TagRepository

__all__ = [
    "BaseRepository",
    "RepositoryRepository",
    "BranchRepository",
    "CommitRepository",
    "TagRepository",
]
