"""
Unit tests for the git handler and the cache store.
"""

import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from helpers import commit_files, fake_working_copy, git, make_source_repo, requires_git

from qi.cache.git_handler import GitHandler
from qi.cache.store import STAGING_PREFIX, CacheStore
from qi.core.exceptions import (
    CloneFailedError,
    DeleteFailedError,
    GitCommandError,
    SyncFailedError,
)
from qi.registry.repository import Repository
from qi.scripts.index import ScriptIndex


@requires_git
class TestGitHandler(unittest.TestCase):
    """Tests for GitHandler against local repositories."""

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.url = make_source_repo(self.tmpdir / "source", {"qi/hello.bash": "echo hello\n"})
        self.git = GitHandler()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_clone_and_info(self):
        """Test cloning and reading repository metadata."""
        target = self.tmpdir / "clone"
        self.git.clone(self.url, target, "main")

        info = self.git.get_repository_info(target)

        self.assertTrue(info["is_git_repo"])
        self.assertEqual(info["branch"], "main")
        self.assertEqual(info["remote_url"], self.url)
        self.assertIn("initial", info["last_commit"])
        self.assertTrue(info["clean"])
        self.assertEqual(len(info["commit_hash"]), 40)

    def test_info_for_plain_directory(self):
        info = self.git.get_repository_info(self.tmpdir)
        self.assertFalse(info["is_git_repo"])
        self.assertIsNone(info["commit_hash"])

    def test_clone_missing_branch_falls_back(self):
        """Test that an unknown branch falls back to the remote default."""
        target = self.tmpdir / "clone"
        self.git.clone(self.url, target, "does-not-exist")

        self.assertEqual(self.git.current_branch(target), "main")

    def test_failed_command(self):
        with self.assertRaises(GitCommandError) as ctx:
            self.git.clone((self.tmpdir / "nowhere").as_uri(), self.tmpdir / "clone")
        self.assertTrue(ctx.exception.reason)
        self.assertNotEqual(ctx.exception.returncode, 0)

    def test_has_local_changes(self):
        target = self.tmpdir / "clone"
        self.git.clone(self.url, target)
        self.assertFalse(self.git.has_local_changes(target))

        (target / "qi" / "hello.bash").write_text("echo changed\n")

        self.assertTrue(self.git.has_local_changes(target))

    def test_untracked_files_are_not_local_changes(self):
        target = self.tmpdir / "clone"
        self.git.clone(self.url, target)
        (target / "notes.txt").write_text("scratch")

        self.assertFalse(self.git.has_local_changes(target))


class TestGitHandlerUnavailable(unittest.TestCase):
    """Tests for a missing git binary."""

    def test_missing_git(self):
        with mock.patch("qi.cache.git_handler.shutil.which", return_value=None):
            handler = GitHandler()

        self.assertFalse(handler.available)
        with self.assertRaises(GitCommandError) as ctx:
            handler.fetch(Path("."), "main")
        self.assertIn("not installed", ctx.exception.reason)


@requires_git
class TestCacheStore(unittest.TestCase):
    """Tests for CacheStore with real clones."""

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.source = self.tmpdir / "source"
        self.url = make_source_repo(self.source, {
            "qi/backup.bash": "echo backup\n",
            "README.md": "tools\n",
        })
        self.cache_dir = self.tmpdir / "cache"
        self.cache = CacheStore(self.cache_dir)
        self.repository = Repository("tools", self.url, "main", self.cache_dir / "tools")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _staging_dirs(self):
        return list(self.cache_dir.glob(f"{STAGING_PREFIX}*"))

    def test_clone(self):
        """Test that a clone appears at the repository's local path."""
        entry = self.cache.clone(self.repository)

        self.assertTrue(self.cache.exists(self.repository))
        self.assertEqual(entry.path, self.repository.local_path)
        self.assertEqual(entry.commit, git(self.source, "rev-parse", "HEAD").strip())
        self.assertTrue((self.repository.local_path / "qi" / "backup.bash").is_file())
        self.assertEqual(self._staging_dirs(), [])

    def test_clone_failure_leaves_nothing(self):
        """Test that a failed clone leaves no directory behind."""
        broken = Repository("broken", (self.tmpdir / "missing").as_uri(), "main", self.cache_dir / "broken")

        with self.assertRaises(CloneFailedError):
            self.cache.clone(broken)

        self.assertFalse(broken.local_path.exists())
        self.assertEqual(self._staging_dirs(), [])

    def test_clone_existing_target(self):
        self.repository.local_path.mkdir(parents=True)

        with self.assertRaises(CloneFailedError):
            self.cache.clone(self.repository)

    def test_clone_removes_stale_staging(self):
        stale = self.cache_dir / f"{STAGING_PREFIX}tools-abc123"
        stale.mkdir(parents=True)

        self.cache.clone(self.repository)

        self.assertFalse(stale.exists())

    def test_entry_without_working_copy(self):
        self.assertIsNone(self.cache.entry(self.repository))

    def test_sync_fast_forward(self):
        """Test that sync picks up new upstream commits."""
        self.cache.clone(self.repository)
        commit_files(self.source, {"qi/restore.bash": "echo restore\n"}, "add restore")

        entry = self.cache.sync(self.repository)

        self.assertTrue((self.repository.local_path / "qi" / "restore.bash").is_file())
        self.assertEqual(entry.commit, git(self.source, "rev-parse", "HEAD").strip())

    def test_sync_follows_checked_out_branch(self):
        """Test that a fallback clone syncs the branch it actually checked out."""
        repository = Repository("fallback", self.url, "gone", self.cache_dir / "fallback")
        self.cache.clone(repository)
        commit_files(self.source, {"qi/new.bash": "echo new\n"}, "add new")

        self.cache.sync(repository)

        self.assertTrue((repository.local_path / "qi" / "new.bash").is_file())

    def test_sync_with_local_changes_fails_without_touching_files(self):
        """Test that a refused sync leaves the working copy byte-identical."""
        self.cache.clone(self.repository)
        local_script = self.repository.local_path / "qi" / "backup.bash"
        local_script.write_text("echo local edit\n")
        before = local_script.read_bytes()
        commit_files(self.source, {"qi/backup.bash": "echo upstream\n"}, "change backup")

        with self.assertRaises(SyncFailedError) as ctx:
            self.cache.sync(self.repository)

        self.assertIn("local changes", ctx.exception.reason)
        self.assertEqual(local_script.read_bytes(), before)
        index = ScriptIndex.rebuild([self.repository], self.cache)
        self.assertEqual(len(index.lookup("backup")), 1)

    def test_sync_force_stashes_local_changes(self):
        """Test that force keeps local edits in the stash and takes upstream."""
        self.cache.clone(self.repository)
        local_script = self.repository.local_path / "qi" / "backup.bash"
        local_script.write_text("echo local edit\n")
        commit_files(self.source, {"qi/backup.bash": "echo upstream\n"}, "change backup")

        self.cache.sync(self.repository, force=True)

        self.assertEqual(local_script.read_text(), "echo upstream\n")
        stashes = git(self.repository.local_path, "stash", "list")
        self.assertIn("qi auto-stash", stashes)

    def test_sync_diverged_history_leaves_working_copy(self):
        """Test that diverged local and upstream commits are refused untouched."""
        self.cache.clone(self.repository)
        local_script = self.repository.local_path / "qi" / "backup.bash"
        commit_files(self.repository.local_path, {"qi/backup.bash": "echo local commit\n"}, "local")
        head_before = git(self.repository.local_path, "rev-parse", "HEAD").strip()
        bytes_before = local_script.read_bytes()
        commit_files(self.source, {"qi/backup.bash": "echo upstream commit\n"}, "upstream")

        with self.assertRaises(SyncFailedError):
            self.cache.sync(self.repository)

        self.assertEqual(git(self.repository.local_path, "rev-parse", "HEAD").strip(), head_before)
        self.assertEqual(local_script.read_bytes(), bytes_before)

    def test_sync_unreachable_remote(self):
        """Test that a fetch failure leaves the previous working copy in place."""
        self.cache.clone(self.repository)
        shutil.rmtree(self.source)

        with self.assertRaises(SyncFailedError):
            self.cache.sync(self.repository)

        self.assertTrue((self.repository.local_path / "qi" / "backup.bash").is_file())

    def test_sync_without_working_copy(self):
        with self.assertRaises(SyncFailedError):
            self.cache.sync(self.repository)

    def test_delete(self):
        self.cache.clone(self.repository)

        self.cache.delete(self.repository)

        self.assertFalse(self.repository.local_path.exists())

    def test_stats(self):
        self.cache.clone(self.repository)

        stats = self.cache.stats()

        self.assertEqual(stats["repository_count"], 1)
        self.assertGreater(stats["total_size_bytes"], 0)
        self.assertEqual(stats["cache_dir"], str(self.cache_dir))


class TestCacheStoreFilesystem(unittest.TestCase):
    """CacheStore behaviour that does not need git."""

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.cache_dir = self.tmpdir / "cache"
        self.cache = CacheStore(self.cache_dir)
        self.repository = Repository("tools", "https://example.com/tools.git", "main", self.cache_dir / "tools")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_delete_absent_is_noop(self):
        self.cache.delete(self.repository)
        self.cache.delete(self.repository)
        self.assertFalse(self.repository.local_path.exists())

    def test_delete_failure(self):
        fake_working_copy(self.repository.local_path, {"qi/a.bash": "true\n"})

        with mock.patch("qi.cache.store.shutil.rmtree", side_effect=OSError("Device or resource busy")):
            with self.assertRaises(DeleteFailedError) as ctx:
                self.cache.delete(self.repository)

        self.assertIn("busy", ctx.exception.reason)
        self.assertTrue(self.repository.local_path.exists())

    def test_clone_with_unusable_cache_root(self):
        """Test that a cache root that is a regular file fails as a clone error."""
        self.cache_dir.write_text("not a directory")

        with self.assertRaises(CloneFailedError) as ctx:
            self.cache.clone(self.repository)

        self.assertIn("cache directory unusable", ctx.exception.reason)
        self.assertTrue(self.cache_dir.is_file())

    def test_dry_run_changes_nothing(self):
        cache = CacheStore(self.cache_dir, dry_run=True)
        cache.clone(self.repository)
        self.assertFalse(self.repository.local_path.exists())

        fake_working_copy(self.repository.local_path, {})
        cache.delete(self.repository)
        self.assertTrue(self.repository.local_path.exists())

    def test_validate(self):
        """Test detection of missing, orphaned and half-cloned directories."""
        missing = Repository("missing", "https://example.com/m.git", "main", self.cache_dir / "missing")
        plain = Repository("plain", "https://example.com/p.git", "main", self.cache_dir / "plain")
        fake_working_copy(self.repository.local_path, {})
        (self.cache_dir / "plain").mkdir()
        (self.cache_dir / "orphan").mkdir()
        (self.cache_dir / f"{STAGING_PREFIX}tools-x").mkdir()

        issues = self.cache.validate([self.repository, missing, plain])

        self.assertEqual(len(issues), 4)
        self.assertTrue(any("missing: working copy missing" in i for i in issues))
        self.assertTrue(any("plain: not a git repository" in i for i in issues))
        self.assertTrue(any("orphan directory" in i for i in issues))
        self.assertTrue(any("leftover staging" in i for i in issues))

    def test_validate_clean(self):
        fake_working_copy(self.repository.local_path, {})
        self.assertEqual(self.cache.validate([self.repository]), [])


if __name__ == "__main__":
    unittest.main()
