"""
Indexing against real git repositories, with the in-memory stores.

upstream main: c1 - c2 - c3 - M - c4   (side branch s1 merged at M, then deleted)
upstream feature: c4 - f1 - f2         (f1 repeats the author and summary of c3)
"""

import unittest

from gitx.config import ProjectSettings
from gitx.entities.repository import Repository
from gitx.services.branch_equivalence import BranchEquivalenceResolver
from gitx.services.discovery import RepositoryDiscovery
from gitx.services.index_worker import IndexWorker
from gitx.services.scheduler import IndexerScheduler
from gitx.services.vcs.gitpython_accessor import GitPythonAccessor
from tests.fakes import (
    InMemoryBranchRepository,
    InMemoryCommitRepository,
    InMemoryRepositoryRepository,
    InMemoryTagRepository,
)
from tests.git_helpers import GitRepoMixin


class TestIndexingEndToEnd(GitRepoMixin, unittest.TestCase):
    def setUp(self):
        self._setup_tmp()

        self.upstream = self._init_repo()
        self.c1 = self._commit(self.upstream, "c1")
        self.c2 = self._commit(self.upstream, "c2")
        self._git(self.upstream, "checkout", "-b", "side")
        self.s1 = self._commit(self.upstream, "s1", filename="side.txt")
        self._git(self.upstream, "checkout", "main")
        self.c3 = self._commit(self.upstream, "c3")
        self.merge = self._merge(self.upstream, "side", "Merge branch side")
        self.c4 = self._commit(self.upstream, "c4")
        self._git(self.upstream, "branch", "-D", "side")

        self._git(self.upstream, "checkout", "-b", "feature")
        self.f1 = self._commit(self.upstream, "c3", filename="feature.txt")
        self.f2 = self._commit(self.upstream, "f2", filename="feature.txt")
        self._git(self.upstream, "checkout", "main")

        self.clone = self._clone(self.upstream)

        self.vcs = GitPythonAccessor(remote_name="origin")
        self.repositories = InMemoryRepositoryRepository()
        self.branches = InMemoryBranchRepository()
        self.commits = InMemoryCommitRepository()
        self.worker = IndexWorker(
            vcs=self.vcs,
            branch_repo=self.branches,
            commit_repo=self.commits,
            tag_repo=InMemoryTagRepository(),
        )
        self.scheduler = IndexerScheduler(
            discovery=RepositoryDiscovery(
                [ProjectSettings(name="demo", base_path=self.tmp_dir, scan_paths=["clone", "missing"])]
            ),
            repository_repo=self.repositories,
            worker=self.worker,
            vcs=self.vcs,
            fetch_timeout_secs=60,
            worker_threads=1,
        )

    def tearDown(self):
        self.scheduler.shutdown()
        self._teardown_tmp()

    def _sync(self):
        discovered = self.scheduler.discovery.discover_all()
        self.assertEqual(len(discovered), 1)
        return discovered[0], self.scheduler.sync_repository(discovered[0])

    def _repository(self) -> Repository:
        return self.repositories.list_all()[0]

    def test_first_pass_indexes_every_branch(self):
        discovered, result = self._sync()

        repository = self._repository()
        self.assertEqual(repository.path, discovered.path)
        self.assertEqual(repository.name, "clone")

        self.assertEqual(result.branches_indexed, 2)
        self.assertEqual(result.commits_indexed, 12)
        self.assertEqual(self.commits.count_by_repository(repository.id, "main"), 5)
        self.assertEqual(self.commits.count_by_repository(repository.id, "feature"), 7)

        oids = {oid for (_, oid, _) in self.commits.rows}
        self.assertEqual(
            oids, {self.c1, self.c2, self.s1, self.c3, self.c4, self.f1, self.f2}
        )
        self.assertNotIn(self.merge, oids)

        branches = {b.name: b for b in self.branches.find_by_repository(repository.id)}
        self.assertEqual(set(branches), {"origin/main", "origin/feature"})
        self.assertTrue(branches["origin/main"].is_default)
        self.assertEqual(branches["origin/feature"].target_oid, self.f2)

    def test_second_pass_inserts_nothing(self):
        self._sync()

        _, result = self._sync()

        self.assertEqual(result.commits_indexed, 0)
        self.assertEqual(len(self.repositories.list_all()), 1)

    def test_new_upstream_commit_is_fetched_and_indexed(self):
        self._sync()
        c5 = self._commit(self.upstream, "c5")

        _, result = self._sync()

        self.assertEqual(result.commits_indexed, 1)
        repository = self._repository()
        latest = self.commits.get_latest_commit(repository.id, "main")
        self.assertEqual(latest.oid, c5)

    def test_branch_diff_ignores_rebased_equivalent(self):
        self._sync()
        repository = self._repository()

        diff = self.commits.find_diff_commits(repository.id, "feature", "main")

        self.assertEqual([c.oid for c in diff], [self.f2])
        self.assertEqual(self.commits.find_diff_commits(repository.id, "main", "feature"), [])

    def test_resolver_compares_with_cherry(self):
        self._sync()
        repository = self._repository()
        resolver = BranchEquivalenceResolver(self.commits, self.vcs)

        comparison = resolver.compare(repository, "origin/feature", "origin/main")

        self.assertEqual([e.commit.oid for e in comparison.entries], [self.f2])
        self.assertFalse(comparison.entries[0].already_applied)

    def test_refresh_picks_up_local_commits_without_fetch(self):
        self._sync()
        repository = self._repository()
        self._git(self.clone, "checkout", "-b", "hotfix", "origin/main")
        self._commit(self.clone, "hotfix")
        self._git(self.clone, "update-ref", "refs/remotes/origin/hotfix", "HEAD")

        result = self.scheduler.refresh_repository(repository.id)

        self.assertEqual(result.commits_indexed, 6)
        self.assertEqual(self.commits.count_by_repository(repository.id, "hotfix"), 6)


if __name__ == "__main__":
    unittest.main()
