"""
Indexer Scheduler - periodic discovery and fan-out of indexing passes.

The timer and fan-out run on an asyncio event loop; everything that touches
git or MongoDB runs on a bounded thread pool. One repository failing (fetch,
indexing or an unexpected error) is counted and logged and never stops the
other repositories or the next cycle.
"""

from __future__ import annotations

import asyncio
import contextvars
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Optional

from gitx.core.tracing import TracingContext
from gitx.entities.repository import Repository
from gitx.repositories.repository import RepositoryRepository
from gitx.services.discovery import DiscoveredRepo, RepositoryDiscovery
from gitx.services.index_worker import IndexResult, IndexWorker
from gitx.services.indexing_exceptions import (
    FetchTimeoutError,
    RepositoryNotFoundError,
    RepositoryTaskFailure,
    VcsError,
)
from gitx.services.vcs.base import VcsAccessor
from gitx.utils.locking import repo_lock

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class IndexStats:
    repos_discovered: int = 0
    repos_synced: int = 0
    repos_failed: int = 0


class IndexerScheduler:
    def __init__(
        self,
        discovery: RepositoryDiscovery,
        repository_repo: RepositoryRepository,
        worker: IndexWorker,
        vcs: VcsAccessor,
        interval_secs: int = 300,
        fetch_timeout_secs: Optional[float] = 300,
        worker_threads: int = 4,
        enabled: bool = True,
    ):
        self.discovery = discovery
        self.repository_repo = repository_repo
        self.worker = worker
        self.vcs = vcs
        self.interval_secs = interval_secs
        self.fetch_timeout_secs = fetch_timeout_secs
        self.worker_threads = max(1, worker_threads)
        self.enabled = enabled
        self.state = SchedulerState.IDLE
        self._executor: Optional[ThreadPoolExecutor] = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.worker_threads,
                thread_name_prefix="gitx-index",
            )
        return self._executor

    async def _run_blocking(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run `fn` on the worker pool with the caller's tracing context."""
        loop = asyncio.get_running_loop()
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(
            self._get_executor(), partial(ctx.run, fn, *args)
        )

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    async def start(self, max_cycles: Optional[int] = None) -> None:
        """
        Run indexing cycles every `interval_secs` until cancelled.

        A cycle only starts after every task of the previous one finished.
        `max_cycles` bounds the loop (used by tests and one-shot runs).
        """
        if not self.enabled:
            logger.info("Indexer is disabled in configuration")
            return

        logger.info(f"Indexer scheduler started, interval: {self.interval_secs}s")
        cycles = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                started = time.monotonic()
                logger.info("Starting scheduled indexing cycle")
                try:
                    stats = await self.run_index_cycle()
                    logger.info(
                        f"Index cycle completed: {stats.repos_discovered} discovered, "
                        f"{stats.repos_synced} synced, {stats.repos_failed} failed"
                    )
                except Exception as e:
                    logger.error(f"Index cycle failed: {e}", exc_info=True)

                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break

                elapsed = time.monotonic() - started
                await asyncio.sleep(max(0.0, self.interval_secs - elapsed))
        finally:
            self.shutdown()

    async def run_index_cycle(self) -> IndexStats:
        self.state = SchedulerState.RUNNING
        TracingContext.set(
            correlation_id=str(uuid.uuid4()),
            cycle_id=uuid.uuid4().hex[:12],
        )
        try:
            discovered = await self._run_blocking(self.discovery.discover_all)
            stats = IndexStats(repos_discovered=len(discovered))

            total = len(discovered)
            outcomes = await asyncio.gather(
                *(
                    self._sync_task(repo, index, total)
                    for index, repo in enumerate(discovered, start=1)
                ),
                return_exceptions=True,
            )

            for repo, outcome in zip(discovered, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, RepositoryTaskFailure):
                        outcome = RepositoryTaskFailure(repo.name, outcome)
                    logger.error(str(outcome))
                    stats.repos_failed += 1
                else:
                    stats.repos_synced += 1

            return stats
        finally:
            self.state = SchedulerState.IDLE

    async def _sync_task(
        self, repo: DiscoveredRepo, index: int, total: int
    ) -> IndexResult:
        TracingContext.set(repo_path=repo.path, task_name="sync_repository")
        logger.info(f"[{index}/{total}] Starting to index: {repo.name}")
        try:
            result = await self._run_blocking(self.sync_repository, repo)
        except Exception as e:
            raise RepositoryTaskFailure(repo.name, e) from e
        logger.info(f"[{index}/{total}] Finished indexing: {repo.name}")
        return result

    def _upsert_repository(self, discovered: DiscoveredRepo) -> Repository:
        existing = self.repository_repo.find_by_path(discovered.path)
        if existing is not None:
            logger.info(f"Updating existing repository: {existing.name}")
            existing.name = discovered.name
            existing.update_sync_time()
            return self.repository_repo.save(existing)

        logger.info(f"Adding new repository: {discovered.name}")
        return self.repository_repo.save(
            Repository(name=discovered.name, path=discovered.path)
        )

    def sync_repository(self, discovered: DiscoveredRepo) -> IndexResult:
        """
        Scheduled pass for one repository: record, fetch, index.

        A failed or timed-out fetch is logged and the pass continues with
        whatever is already on disk.
        """
        with repo_lock(discovered.path):
            repository = self._upsert_repository(discovered)
            TracingContext.set(repo_id=str(repository.id))

            try:
                fetched = self.vcs.fetch_repository(
                    discovered.path, timeout=self.fetch_timeout_secs
                )
                logger.info(
                    f"Repository {discovered.name} fetched: "
                    f"{len(fetched.branches_updated)} branches updated"
                )
            except FetchTimeoutError as e:
                logger.error(f"{e}; continuing with local data")
            except VcsError as e:
                logger.error(
                    f"Failed to fetch repository {discovered.name}: {e}; "
                    f"continuing with local data"
                )

            return self.worker.index_repository(
                repository.id, discovered.path, repository.default_branch
            )

    def _get_repository(self, repository_id: int) -> Repository:
        repository = self.repository_repo.find_by_id(repository_id)
        if repository is None:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def trigger_index(self, repository_id: int) -> IndexResult:
        """
        Manual fetch + index of one repository.

        Unlike the scheduled path, fetch errors propagate to the caller.
        """
        repository = self._get_repository(repository_id)
        TracingContext.set(repo_id=str(repository.id), repo_path=repository.path)

        with repo_lock(repository.path):
            self.vcs.fetch_repository(repository.path, timeout=self.fetch_timeout_secs)
            result = self.worker.index_repository(
                repository.id, repository.path, repository.default_branch
            )
            self.repository_repo.update_sync_time(repository.id)

        logger.info(
            f"Manual index of {repository.name}: {result.commits_indexed} new commits"
        )
        return result

    def refresh_repository(self, repository_id: int) -> IndexResult:
        """Re-index local state after an out-of-band change (cherry-pick, push, merge)."""
        repository = self._get_repository(repository_id)
        TracingContext.set(repo_id=str(repository.id), repo_path=repository.path)

        with repo_lock(repository.path):
            return self.worker.index_repository(
                repository.id, repository.path, repository.default_branch
            )
