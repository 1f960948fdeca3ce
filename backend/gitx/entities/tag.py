"""
Tag Entity.

Collection: tags
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .base import BaseEntity


class Tag(BaseEntity):
    """Tagger fields stay empty for lightweight tags."""

    repository_id: int
    name: str
    target_oid: str
    tagger_name: Optional[str] = None
    tagger_email: Optional[str] = None
    tagger_time: Optional[datetime] = None
    message: Optional[str] = None
