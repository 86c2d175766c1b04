"""
Unit tests for core module components.
"""

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from qi.core.config import (
    Config,
    ConfigError,
    QiConfig,
    CacheConfig,
    ScriptConfig,
    parse_bool,
)
from qi.core.exceptions import (
    EXIT_CONFLICT,
    EXIT_FILE_ERROR,
    EXIT_GIT_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    CloneFailedError,
    DeleteFailedError,
    DuplicateNameError,
    GitCommandError,
    InvalidSelectionError,
    InvalidURLError,
    QiError,
    RegistryError,
    RepositoryNotFoundError,
    ScriptNotFoundError,
    SyncFailedError,
)


def _without_qi_env():
    """Patch os.environ with every QI_* variable removed."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("QI_")}
    return mock.patch.dict(os.environ, env, clear=True)


class TestConfig(unittest.TestCase):
    """Tests for configuration management."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        Config.reset()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)
        Config.reset()

    def test_default_config(self):
        """Test that default configuration is created correctly."""
        config = QiConfig()

        self.assertIsInstance(config.cache, CacheConfig)
        self.assertIsInstance(config.scripts, ScriptConfig)
        self.assertEqual(config.cache.default_branch, "main")
        self.assertEqual(config.cache.git_timeout, 300)
        self.assertEqual(config.scripts.extension, ".bash")
        self.assertEqual(config.scripts.search_dir, "")
        self.assertIn(".git", config.scripts.ignore_dirs)
        self.assertFalse(config.auto_update)

    def test_load_derives_paths_from_config_dir(self):
        """Test that the cache and registry live under the config directory by default."""
        with _without_qi_env():
            config = Config.load(self.tmpdir)

        self.assertEqual(config.cache_path, Path(self.tmpdir) / "cache")
        self.assertEqual(config.registry_path, Path(self.tmpdir) / "repositories.json")
        self.assertEqual(config.config_path, Path(self.tmpdir) / "config.json")

    def test_load_reads_config_file(self):
        """Test loading values from config.json."""
        with open(Path(self.tmpdir) / "config.json", "w") as f:
            json.dump({
                "cache": {"default_branch": "develop", "git_timeout": 60},
                "scripts": {"search_dir": "qi"},
                "auto_update": "yes",
            }, f)

        with _without_qi_env():
            config = Config.load(self.tmpdir)

        self.assertEqual(config.cache.default_branch, "develop")
        self.assertEqual(config.cache.git_timeout, 60)
        self.assertEqual(config.scripts.search_dir, "qi")
        self.assertTrue(config.auto_update)

    def test_environment_overrides_file(self):
        """Test that QI_* variables take precedence over the file."""
        with open(Path(self.tmpdir) / "config.json", "w") as f:
            json.dump({"auto_update": True}, f)

        cache_dir = str(Path(self.tmpdir) / "elsewhere")
        with _without_qi_env():
            os.environ.update({
                "QI_AUTO_UPDATE": "no",
                "QI_GIT_TIMEOUT": "30",
                "QI_CACHE_DIR": cache_dir,
            })
            config = Config.load(self.tmpdir)

        self.assertFalse(config.auto_update)
        self.assertEqual(config.cache.git_timeout, 30)
        self.assertEqual(config.cache_path, Path(cache_dir))

    def test_config_dir_from_environment(self):
        """Test QI_CONFIG_DIR is used when no directory is passed."""
        with _without_qi_env():
            os.environ["QI_CONFIG_DIR"] = self.tmpdir
            config = Config.load()

        self.assertEqual(config.registry_path, Path(self.tmpdir) / "repositories.json")

    def test_invalid_boolean_in_environment(self):
        """Test that an unparseable boolean is rejected."""
        with _without_qi_env():
            os.environ["QI_AUTO_UPDATE"] = "maybe"
            with self.assertRaises(ConfigError):
                Config.load(self.tmpdir)

    def test_invalid_timeout_in_file(self):
        """Test validation of git_timeout."""
        with open(Path(self.tmpdir) / "config.json", "w") as f:
            json.dump({"cache": {"git_timeout": 0}}, f)

        with _without_qi_env():
            with self.assertRaises(ConfigError):
                Config.load(self.tmpdir)

    def test_unknown_key_in_file(self):
        """Test that unknown section keys are reported."""
        with open(Path(self.tmpdir) / "config.json", "w") as f:
            json.dump({"cache": {"colour": "blue"}}, f)

        with _without_qi_env():
            with self.assertRaises(ConfigError):
                Config.load(self.tmpdir)

    def test_malformed_file(self):
        """Test that a file that is not JSON is reported."""
        (Path(self.tmpdir) / "config.json").write_text("{not json")

        with _without_qi_env():
            with self.assertRaises(ConfigError):
                Config.load(self.tmpdir)

    def test_save_to_file(self):
        """Test saving the current configuration."""
        with _without_qi_env():
            config = Config.load(self.tmpdir)
        config.cache.default_branch = "trunk"

        path = Path(self.tmpdir) / "saved" / "config.json"
        Config.save_to_file(str(path))

        with open(path) as f:
            data = json.load(f)
        self.assertEqual(data["cache"]["default_branch"], "trunk")
        self.assertEqual(data["scripts"]["extension"], ".bash")

    def test_parse_bool(self):
        """Test boolean parsing."""
        for value in ("true", "YES", "1", True):
            self.assertTrue(parse_bool(value))
        for value in ("false", "No", "0", False):
            self.assertFalse(parse_bool(value))
        with self.assertRaises(ConfigError):
            parse_bool("sometimes", "auto_update")


class TestExceptions(unittest.TestCase):
    """Tests for the exception hierarchy."""

    def test_base_exception(self):
        """Test base exception formatting."""
        error = QiError("Something failed", component="Test", details={"key": "value"})

        self.assertEqual(str(error), "[Test] Something failed")
        self.assertEqual(error.details["key"], "value")
        self.assertEqual(error.exit_code, 1)

    def test_exit_codes(self):
        """Test the exit code carried by each error kind."""
        self.assertEqual(InvalidURLError("x").exit_code, EXIT_INVALID_USAGE)
        self.assertEqual(RepositoryNotFoundError("x").exit_code, EXIT_NOT_FOUND)
        self.assertEqual(ScriptNotFoundError("x").exit_code, EXIT_NOT_FOUND)
        self.assertEqual(DuplicateNameError("x").exit_code, EXIT_CONFLICT)
        self.assertEqual(CloneFailedError("x", "boom").exit_code, EXIT_GIT_ERROR)
        self.assertEqual(SyncFailedError("x", "boom").exit_code, EXIT_GIT_ERROR)
        self.assertEqual(DeleteFailedError("x", "busy").exit_code, EXIT_FILE_ERROR)
        self.assertEqual(InvalidSelectionError("9", 2).exit_code, EXIT_INVALID_USAGE)

    def test_registry_errors_share_base(self):
        """Test that registry lookups can be caught as RegistryError."""
        with self.assertRaises(RegistryError):
            raise DuplicateNameError("tools")

    def test_git_command_error(self):
        """Test git command error message."""
        error = GitCommandError(["git", "fetch", "origin"], "could not read", returncode=128)

        self.assertIn("git fetch origin failed: could not read", str(error))
        self.assertEqual(error.returncode, 128)
        self.assertEqual(error.reason, "could not read")

    def test_invalid_selection_details(self):
        """Test that the invalid answer and candidate count are kept."""
        error = InvalidSelectionError("7", 3)

        self.assertEqual(error.selection, "7")
        self.assertEqual(error.count, 3)
        self.assertIn("between 1 and 3", str(error))


if __name__ == "__main__":
    unittest.main()
