"""
Branch Entity - latest known tip of a remote-tracking branch.

Collection: branches
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from gitx.utils.datetime import utc_now

from .base import BaseEntity


class Branch(BaseEntity):
    """One row per (repository_id, name); every indexing pass upserts it."""

    repository_id: int
    name: str = Field(..., description="Remote-tracking name, e.g. origin/main")
    target_oid: str
    is_default: bool = False
    updated_at: datetime = Field(default_factory=utc_now)
