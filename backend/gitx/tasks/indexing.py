"""
Indexing Tasks - entry points for collaborators outside the scheduler.

1. trigger_repository_index - fetch + index now; errors fail the task
2. refresh_repository_index - index local state after an out-of-band change
   (cherry-pick, push, merge) without fetching
"""

import logging
import uuid
from dataclasses import asdict
from typing import Any, Dict

from gitx.celery_app import celery_app
from gitx.core.tracing import TracingContext
from gitx.tasks.base import IndexingTask

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=IndexingTask,
    name="gitx.tasks.indexing.trigger_repository_index",
    queue="indexing",
)
def trigger_repository_index(
    self: IndexingTask, repository_id: int, correlation_id: str = ""
) -> Dict[str, Any]:
    TracingContext.set(
        correlation_id=correlation_id or str(uuid.uuid4()),
        task_name="trigger_repository_index",
    )
    logger.info(f"Manual index requested for repository {repository_id}")

    result = self.scheduler.trigger_index(repository_id)
    return {"repository_id": repository_id, **asdict(result)}


@celery_app.task(
    bind=True,
    base=IndexingTask,
    name="gitx.tasks.indexing.refresh_repository_index",
    queue="indexing",
)
def refresh_repository_index(
    self: IndexingTask, repository_id: int, correlation_id: str = ""
) -> Dict[str, Any]:
    TracingContext.set(
        correlation_id=correlation_id or str(uuid.uuid4()),
        task_name="refresh_repository_index",
    )
    logger.info(f"Refresh requested for repository {repository_id}")

    result = self.scheduler.refresh_repository(repository_id)
    return {"repository_id": repository_id, **asdict(result)}
