"""
Git operations handler for the repository cache.

Runs the git client as a subprocess. Every operation either succeeds or
raises GitCommandError carrying git's diagnostic output.
"""

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from qi.core.config import CacheConfig
from qi.core.exceptions import GitCommandError

logger = logging.getLogger(__name__)


class GitHandler:
    """
    Handles git operations for cached working copies.

    Supports any URL the git client itself accepts.
    """

    def __init__(self, config: CacheConfig = None):
        self.config = config or CacheConfig()
        self._git_available = self._check_git_available()

    def _check_git_available(self) -> bool:
        """Check if git is available on the system."""
        return shutil.which("git") is not None

    @property
    def available(self) -> bool:
        return self._git_available

    def _run(self, args: List[str], cwd: Optional[Path] = None) -> str:
        """
        Run a git command and return its stdout.

        Raises:
            GitCommandError: On a non-zero exit, a timeout or a missing git binary.
        """
        cmd = ["git"] + args
        if not self._git_available:
            raise GitCommandError(cmd, "git is not installed or not available in PATH")

        logger.debug(f"Git command: {' '.join(cmd)}" + (f" (in {cwd})" if cwd else ""))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=self.config.git_timeout,
                env=self._environment(),
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(
                cmd, f"timed out after {self.config.git_timeout} seconds"
            )
        except OSError as e:
            raise GitCommandError(cmd, str(e))

        if result.returncode != 0:
            reason = (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"
            raise GitCommandError(cmd, reason, result.returncode)

        return result.stdout

    @staticmethod
    def _environment() -> dict:
        """Environment for git subprocesses; never block on a credential prompt."""
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def clone(self, url: str, target: Path, branch: Optional[str] = None) -> None:
        """
        Clone ``url`` into ``target``.

        When ``branch`` does not exist on the remote, falls back to the
        remote's default branch.
        """
        logger.info(f"Cloning repository: {url}")
        if branch:
            try:
                self._run(["clone", "--branch", branch, "--single-branch", url, str(target)])
                return
            except GitCommandError as e:
                if "Remote branch" not in e.reason and "not found" not in e.reason:
                    raise
                logger.warning(
                    f"Branch '{branch}' not found on {url}, cloning default branch"
                )
                if target.exists():
                    shutil.rmtree(target)

        self._run(["clone", url, str(target)])

    def fetch(self, repo_path: Path, branch: str) -> None:
        """Fetch ``branch`` from origin into FETCH_HEAD without touching the working tree."""
        self._run(["fetch", "origin", branch], cwd=repo_path)

    def fast_forward(self, repo_path: Path, ref: str = "FETCH_HEAD") -> None:
        """Fast-forward the checked-out branch to ``ref``; fails on diverged history."""
        self._run(["merge", "--ff-only", ref], cwd=repo_path)

    def reset_hard(self, repo_path: Path, ref: str = "FETCH_HEAD") -> None:
        self._run(["reset", "--hard", ref], cwd=repo_path)

    def has_local_changes(self, repo_path: Path) -> bool:
        """True if tracked files are modified or staged."""
        output = self._run(["status", "--porcelain", "--untracked-files=no"], cwd=repo_path)
        return bool(output.strip())

    def stash(self, repo_path: Path) -> None:
        message = f"qi auto-stash {datetime.now().isoformat(timespec='seconds')}"
        self._run(
            ["-c", "user.name=qi", "-c", "user.email=qi@localhost", "stash", "push", "-m", message],
            cwd=repo_path,
        )

    def current_branch(self, repo_path: Path) -> Optional[str]:
        """Checked-out branch name, or None on a detached HEAD."""
        try:
            branch = self._run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo_path).strip()
        except GitCommandError:
            return None
        return None if branch == "HEAD" else branch

    def head_commit(self, repo_path: Path) -> Optional[str]:
        try:
            return self._run(["rev-parse", "HEAD"], cwd=repo_path).strip()
        except GitCommandError:
            return None

    def get_repository_info(self, repo_path: Path) -> dict:
        """
        Extract git metadata from a working copy.

        Args:
            repo_path: Path to the working copy.

        Returns:
            Dictionary containing commit hash, branch, remote URL and last
            commit subject; values are None when unavailable.
        """
        info = {
            "commit_hash": None,
            "branch": None,
            "remote_url": None,
            "last_commit": None,
            "is_git_repo": False,
            "clean": None,
        }

        if not (repo_path / ".git").exists():
            return info

        info["is_git_repo"] = True

        queries = {
            "commit_hash": ["rev-parse", "HEAD"],
            "branch": ["rev-parse", "--abbrev-ref", "HEAD"],
            "remote_url": ["remote", "get-url", "origin"],
            "last_commit": ["log", "-1", "--format=%h %s"],
        }
        for key, args in queries.items():
            try:
                info[key] = self._run(args, cwd=repo_path).strip()
            except GitCommandError:
                pass

        try:
            info["clean"] = not self.has_local_changes(repo_path)
        except GitCommandError:
            pass

        return info
