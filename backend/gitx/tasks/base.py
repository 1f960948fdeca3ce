"""Base task class shared by indexing tasks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from celery import Task
from pymongo.database import Database

from gitx.database.mongo import get_database

if TYPE_CHECKING:
    from gitx.services.scheduler import IndexerScheduler

logger = logging.getLogger(__name__)


class IndexingTask(Task):
    """Task with a lazily built database handle and scheduler per worker process."""

    _db: Optional[Database] = None
    _scheduler: Optional["IndexerScheduler"] = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = get_database()
        return self._db

    @property
    def scheduler(self) -> "IndexerScheduler":
        if self._scheduler is None:
            from gitx.main import build_scheduler

            self._scheduler = build_scheduler(self.db)
        return self._scheduler

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {self.name}[{task_id}] failed: {exc}")
        super().on_failure(exc, task_id, args, kwargs, einfo)
