"""Database entity models - represents the actual structure stored in MongoDB"""

from .base import BaseEntity, PyObjectId
from .branch import Branch
from .commit import Commit
from .repository import Repository
from .tag import Tag

__all__ = [
    # Base
    "BaseEntity",
    "PyObjectId",
    # Mirrored data
    "Repository",
    "Branch",
    "Commit",
    "Tag",
]
