"""Indexer service entry point: wires settings, stores and services, then runs the scheduler."""

import asyncio
import logging
from typing import Optional

from pymongo.database import Database

from gitx.config import Settings, settings
from gitx.core.logging import setup_logging
from gitx.database.mongo import get_database
from gitx.repositories.branch import BranchRepository
from gitx.repositories.commit import CommitRepository
from gitx.repositories.repository import RepositoryRepository
from gitx.repositories.tag import TagRepository
from gitx.services.branch_equivalence import BranchEquivalenceResolver
from gitx.services.discovery import RepositoryDiscovery
from gitx.services.index_worker import IndexWorker
from gitx.services.scheduler import IndexerScheduler
from gitx.services.vcs.gitpython_accessor import GitPythonAccessor

logger = logging.getLogger(__name__)


def build_accessor(config: Settings = settings) -> GitPythonAccessor:
    return GitPythonAccessor(
        remote_name=config.GIT_REMOTE_NAME,
        ssh_key_path=config.ssh_key_path,
        fetch_timeout=config.GIT_FETCH_TIMEOUT_SECS,
    )


def build_scheduler(
    db: Optional[Database] = None, config: Settings = settings
) -> IndexerScheduler:
    db = db if db is not None else get_database()
    vcs = build_accessor(config)

    worker = IndexWorker(
        vcs=vcs,
        branch_repo=BranchRepository(db),
        commit_repo=CommitRepository(db),
        tag_repo=TagRepository(db),
        max_commits_per_branch=config.INDEXER_MAX_COMMITS_PER_BRANCH,
        remote_name=config.GIT_REMOTE_NAME,
        index_tags=config.INDEXER_INDEX_TAGS,
        prune_stale_branches=config.INDEXER_PRUNE_STALE_BRANCHES,
    )
    return IndexerScheduler(
        discovery=RepositoryDiscovery(config.effective_projects()),
        repository_repo=RepositoryRepository(db),
        worker=worker,
        vcs=vcs,
        interval_secs=config.INDEXER_INTERVAL_SECS,
        fetch_timeout_secs=config.GIT_FETCH_TIMEOUT_SECS,
        worker_threads=config.INDEXER_WORKER_THREADS,
        enabled=config.INDEXER_ENABLED,
    )


def build_resolver(
    db: Optional[Database] = None, config: Settings = settings
) -> BranchEquivalenceResolver:
    db = db if db is not None else get_database()
    return BranchEquivalenceResolver(
        commit_repo=CommitRepository(db),
        vcs=build_accessor(config),
        remote_name=config.GIT_REMOTE_NAME,
        match_committer_time=config.BRANCH_DIFF_MATCH_COMMITTER_TIME,
        default_limit=config.BRANCH_DIFF_LIMIT,
    )


def main() -> None:
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")

    projects = settings.effective_projects()
    if not projects:
        logger.warning("No projects configured; set PROJECTS or GIT_BASE_PATH")

    scheduler = build_scheduler()
    try:
        asyncio.run(scheduler.start())
    except KeyboardInterrupt:
        logger.info("Indexer stopped")


if __name__ == "__main__":
    main()
