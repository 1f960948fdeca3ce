import unittest
from datetime import datetime, timezone

from gitx.services.index_worker import IndexWorker, to_commit_entity
from gitx.services.indexing_exceptions import StoreError, VcsError
from gitx.services.vcs.base import TagRecord
from tests.fakes import (
    FakeVcs,
    InMemoryBranchRepository,
    InMemoryCommitRepository,
    InMemoryTagRepository,
    make_record,
)

REPO_ID = 1
PATH = "/srv/git/api"


class TestIndexWorker(unittest.TestCase):
    def setUp(self):
        self.events = []
        self.c1 = make_record("a1" * 20, "init", 100)
        self.c2 = make_record("a2" * 20, "add api", 200, parents=["a1" * 20])
        self.c3 = make_record("a3" * 20, "fix api", 300, parents=["a2" * 20])
        self.f1 = make_record("f1" * 20, "feature work", 400, parents=["a3" * 20])

        self.vcs = FakeVcs(
            {
                "origin/main": [self.c3, self.c2, self.c1],
                "origin/feature": [self.f1, self.c3, self.c2, self.c1],
            }
        )
        self.vcs.head = "origin/main"
        self.branches = InMemoryBranchRepository(self.events)
        self.commits = InMemoryCommitRepository(self.events)
        self.tags = InMemoryTagRepository()
        self.worker = IndexWorker(
            vcs=self.vcs,
            branch_repo=self.branches,
            commit_repo=self.commits,
            tag_repo=self.tags,
            max_commits_per_branch=100,
        )

    def test_indexes_every_remote_branch(self):
        result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.branches_indexed, 2)
        self.assertEqual(result.branches_failed, 0)
        self.assertEqual(result.commits_indexed, 7)
        self.assertEqual(self.commits.count_by_repository(REPO_ID, "main"), 3)
        self.assertEqual(self.commits.count_by_repository(REPO_ID, "feature"), 4)

    def test_branches_are_saved_before_commits(self):
        self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(self.events[0], ("save_branches", 2))
        self.assertTrue(all(e[0] == "insert_commits" for e in self.events[1:]))

    def test_branch_rows_keep_remote_names_and_default_flag(self):
        self.worker.index_repository(REPO_ID, PATH, default_branch="main")

        branches = {b.name: b for b in self.branches.find_by_repository(REPO_ID)}
        self.assertEqual(set(branches), {"origin/main", "origin/feature"})
        self.assertTrue(branches["origin/main"].is_default)
        self.assertFalse(branches["origin/feature"].is_default)
        self.assertEqual(branches["origin/feature"].target_oid, self.f1.oid)

    def test_configured_default_branch_wins_over_checked_out_branch(self):
        self.vcs.head = "origin/feature"

        self.worker.index_repository(REPO_ID, PATH, default_branch="main")

        defaults = [b.name for b in self.branches.find_by_repository(REPO_ID) if b.is_default]
        self.assertEqual(defaults, ["origin/main"])

    def test_checked_out_branch_is_default_when_configured_one_is_missing(self):
        self.vcs.head = "origin/feature"

        self.worker.index_repository(REPO_ID, PATH, default_branch="trunk")

        defaults = [b.name for b in self.branches.find_by_repository(REPO_ID) if b.is_default]
        self.assertEqual(defaults, ["origin/feature"])

    def test_second_pass_is_idempotent(self):
        self.worker.index_repository(REPO_ID, PATH)
        before = dict(self.commits.rows)

        result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.commits_indexed, 0)
        self.assertEqual(set(self.commits.rows), set(before))

    def test_second_pass_resumes_from_cursor(self):
        self.worker.index_repository(REPO_ID, PATH)
        c4 = make_record("a4" * 20, "more api", 500, parents=["a3" * 20])
        self.vcs.histories["origin/main"].insert(0, c4)
        self.vcs.calls.clear()

        result = self.worker.index_repository(REPO_ID, PATH)

        self.assertIn(("get_commits", "origin/main", self.c3.oid), self.vcs.calls)
        self.assertIn(("get_commits", "origin/feature", self.f1.oid), self.vcs.calls)
        self.assertEqual(result.commits_indexed, 1)

    def test_merge_commits_are_not_stored(self):
        merge = make_record("m0" * 20, "Merge feature", 600, parents=["a3" * 20, "f1" * 20])
        self.vcs.histories["origin/main"].insert(0, merge)

        self.worker.index_repository(REPO_ID, PATH)

        self.assertNotIn(merge.oid, {oid for (_, oid, _) in self.commits.rows})

    def test_failing_branch_does_not_stop_others(self):
        self.vcs.failing_branches.add("origin/feature")

        with self.assertLogs("gitx.services.index_worker", level="ERROR"):
            result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.branches_failed, 1)
        self.assertEqual(result.branches_indexed, 1)
        self.assertEqual(self.commits.count_by_repository(REPO_ID, "main"), 3)

    def test_store_error_aborts_pass(self):
        self.commits.fail_on_insert = True

        with self.assertRaises(StoreError):
            self.worker.index_repository(REPO_ID, PATH)

    def test_non_remote_branches_are_skipped(self):
        self.vcs.histories["upstream/main"] = [self.c1]

        result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.branches_indexed, 2)
        self.assertNotIn(("get_commits", "upstream/main", None), self.vcs.calls)

    def test_tags_are_saved(self):
        self.vcs.tags = [
            TagRecord(name="v1.0", target_oid=self.c2.oid, tagger_name="Alice", tagger_time=250, message="Release"),
            TagRecord(name="v0.1", target_oid=self.c1.oid),
        ]

        result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.tags_indexed, 2)
        tag = self.tags.rows[(REPO_ID, "v1.0")]
        self.assertEqual(tag.tagger_time, datetime.fromtimestamp(250, tz=timezone.utc))
        self.assertIsNone(self.tags.rows[(REPO_ID, "v0.1")].tagger_time)

    def test_tag_listing_failure_is_not_fatal(self):
        self.vcs.tags_error = VcsError("broken tags")

        with self.assertLogs("gitx.services.index_worker", level="WARNING"):
            result = self.worker.index_repository(REPO_ID, PATH)

        self.assertEqual(result.tags_indexed, 0)
        self.assertEqual(result.commits_indexed, 7)

    def test_stale_branches_pruned_only_when_enabled(self):
        self.worker.index_repository(REPO_ID, PATH)
        del self.vcs.histories["origin/feature"]

        self.worker.index_repository(REPO_ID, PATH)
        self.assertEqual(len(self.branches.find_by_repository(REPO_ID)), 2)

        self.worker.prune_stale_branches = True
        self.worker.index_repository(REPO_ID, PATH)
        self.assertEqual(
            [b.name for b in self.branches.find_by_repository(REPO_ID)], ["origin/main"]
        )
        # Commit rows are never deleted
        self.assertEqual(self.commits.count_by_repository(REPO_ID, "feature"), 4)

    def test_to_commit_entity_converts_times(self):
        commit = to_commit_entity(REPO_ID, "main", self.c2)

        self.assertEqual(commit.branch, "main")
        self.assertEqual(commit.author_time, datetime.fromtimestamp(200, tz=timezone.utc))
        self.assertEqual(commit.parent_oids, [self.c1.oid])
        self.assertEqual(commit.message, "add api\n")


if __name__ == "__main__":
    unittest.main()
