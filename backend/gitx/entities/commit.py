"""
Commit Entity - a non-merge commit as seen from one branch.

The same oid is stored once per branch it was reachable from when that
branch was indexed, so the unique key is (repository_id, oid, branch).

Collection: commits
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import BaseEntity


class Commit(BaseEntity):
    repository_id: int
    oid: str
    branch: str = Field(..., description="Branch short name (remote prefix stripped)")

    author_name: str
    author_email: str
    author_time: datetime
    committer_name: str
    committer_email: str
    committer_time: datetime

    summary: str
    message: Optional[str] = None
    parent_oids: List[str] = Field(default_factory=list)
