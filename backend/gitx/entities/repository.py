"""
Repository Entity - one mirrored Git checkout.

Collection: repositories
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from gitx.utils.datetime import utc_now

from .base import BaseEntity


class Repository(BaseEntity):
    """
    A repository found by discovery.

    `path` is unique; the integer id is assigned by the store on first save
    and the row is updated, never duplicated, on later discoveries.
    """

    id: Optional[int] = Field(None, alias="_id")

    name: str
    path: str = Field(..., description="Canonical filesystem path of the checkout")
    description: Optional[str] = None
    default_branch: str = Field(
        default="main",
        description="Default branch name (main, master, develop, etc.)",
    )
    last_synced_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utc_now)

    def update_sync_time(self) -> None:
        now = utc_now()
        self.last_synced_at = now
        self.updated_at = now
