"""
Shared fixtures for tests that need real git repositories.
"""

import os
import shutil
import subprocess
import unittest
from pathlib import Path
from typing import Dict

requires_git = unittest.skipUnless(shutil.which("git"), "git is not installed")
requires_bash = unittest.skipUnless(shutil.which("bash"), "bash is not installed")

GIT_ENV = dict(
    os.environ,
    GIT_AUTHOR_NAME="qi tests",
    GIT_AUTHOR_EMAIL="tests@example.com",
    GIT_COMMITTER_NAME="qi tests",
    GIT_COMMITTER_EMAIL="tests@example.com",
    GIT_CONFIG_NOSYSTEM="1",
)


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=GIT_ENV,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def commit_files(repo: Path, files: Dict[str, str], message: str = "update") -> None:
    """Write ``files`` (relative path to content) into ``repo`` and commit them."""
    for relative_path, content in files.items():
        path = repo / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)


def make_source_repo(path: Path, files: Dict[str, str], branch: str = "main") -> str:
    """
    Create a repository with one commit on ``branch``.

    Returns:
        A file:// URL that qi can clone.
    """
    path.mkdir(parents=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
    commit_files(path, files, "initial")
    return path.as_uri()


def fake_working_copy(path: Path, files: Dict[str, str]) -> Path:
    """Directory that looks cloned (has .git) without running git."""
    (path / ".git").mkdir(parents=True)
    for relative_path, content in files.items():
        target = path / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return path
