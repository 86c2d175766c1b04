"""
On-disk cache of repository working copies.

Each registered repository owns ``<cache_dir>/<name>``. A working copy
only ever appears at that path fully cloned: clones happen in a staging
directory that is renamed into place on success.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from qi.cache.git_handler import GitHandler
from qi.core.config import CacheConfig
from qi.core.exceptions import (
    CloneFailedError,
    DeleteFailedError,
    GitCommandError,
    SyncFailedError,
)
from qi.registry.repository import Repository

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".qi-staging-"


@dataclass
class CacheEntry:
    """The working copy of one repository as of its last successful sync."""

    repository: Repository
    path: Path
    commit: Optional[str] = None


class CacheStore:
    """
    Filesystem area holding one git working copy per registered repository.

    In dry-run mode clone, sync and delete only log what they would do.
    """

    def __init__(
        self,
        cache_dir: Path,
        git: GitHandler = None,
        config: CacheConfig = None,
        dry_run: bool = False,
    ):
        self.cache_dir = Path(cache_dir)
        self.config = config or CacheConfig()
        self.git = git or GitHandler(self.config)
        self.dry_run = dry_run

    def exists(self, repository: Repository) -> bool:
        """Cheap check that a cloned working copy is present."""
        return (repository.local_path / ".git").exists()

    def entry(self, repository: Repository) -> Optional[CacheEntry]:
        if not self.exists(repository):
            return None
        return CacheEntry(
            repository=repository,
            path=repository.local_path,
            commit=self.git.head_commit(repository.local_path),
        )

    def clone(self, repository: Repository) -> CacheEntry:
        """
        Create a fresh working copy at ``repository.local_path``.

        Raises:
            CloneFailedError: If the target already exists or git fails. No
                directory is left at the target path on failure.
        """
        target = repository.local_path
        if target.exists():
            raise CloneFailedError(
                repository.name, f"cache directory already exists: {target}"
            )

        if self.dry_run:
            logger.info(f"[DRY RUN] Would clone: {repository.url} -> {target}")
            return CacheEntry(repository=repository, path=target)

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._remove_stale_staging(repository.name)
            staging_root = Path(
                tempfile.mkdtemp(prefix=f"{STAGING_PREFIX}{repository.name}-", dir=self.cache_dir)
            )
        except OSError as e:
            raise CloneFailedError(repository.name, f"cache directory unusable: {e}")
        staging = staging_root / "work"

        try:
            self.git.clone(repository.url, staging, repository.branch)
            staging.rename(target)
        except GitCommandError as e:
            raise CloneFailedError(repository.name, e.reason)
        except OSError as e:
            raise CloneFailedError(repository.name, str(e))
        finally:
            shutil.rmtree(staging_root, ignore_errors=True)

        logger.info(f"Cloned repository '{repository.name}' into {target}")
        return CacheEntry(
            repository=repository,
            path=target,
            commit=self.git.head_commit(target),
        )

    def sync(self, repository: Repository, force: bool = False) -> CacheEntry:
        """
        Bring an existing working copy up to date with its tracked branch.

        The remote is fetched first, which leaves the working tree alone;
        the tree only moves on a clean fast-forward. With ``force``, local
        changes are stashed and the tree is reset to the fetched commit.

        Raises:
            SyncFailedError: The previous working copy is left as it was.
        """
        path = repository.local_path
        if not self.exists(repository):
            raise SyncFailedError(repository.name, f"no working copy at {path}")

        branch = self.git.current_branch(path) or repository.branch

        if self.dry_run:
            logger.info(f"[DRY RUN] Would update: {repository.name} ({branch})")
            return CacheEntry(repository=repository, path=path, commit=self.git.head_commit(path))

        try:
            self.git.fetch(path, branch)

            if self.git.has_local_changes(path):
                if not force:
                    raise SyncFailedError(
                        repository.name,
                        "local changes detected; use --force to stash them",
                    )
                logger.warning(f"Stashing local changes in '{repository.name}'")
                self.git.stash(path)
                self.git.reset_hard(path)
            elif force:
                self.git.reset_hard(path)
            else:
                self.git.fast_forward(path)
        except GitCommandError as e:
            raise SyncFailedError(repository.name, e.reason)

        logger.info(f"Updated repository '{repository.name}' ({branch})")
        return CacheEntry(repository=repository, path=path, commit=self.git.head_commit(path))

    def delete(self, repository: Repository) -> None:
        """
        Remove the working copy. Deleting an absent working copy succeeds.

        Raises:
            DeleteFailedError: If the directory cannot be removed.
        """
        path = repository.local_path
        if not path.exists():
            logger.debug(f"Nothing to delete for '{repository.name}': {path} is absent")
            return

        if self.dry_run:
            logger.info(f"[DRY RUN] Would remove: {path}")
            return

        try:
            shutil.rmtree(path)
        except OSError as e:
            raise DeleteFailedError(repository.name, str(e))

        logger.info(f"Deleted working copy of '{repository.name}'")

    def _remove_stale_staging(self, name: str) -> None:
        """Drop staging directories left behind by an interrupted clone of ``name``."""
        for stale in self.cache_dir.glob(f"{STAGING_PREFIX}{name}-*"):
            logger.debug(f"Removing stale staging directory: {stale}")
            shutil.rmtree(stale, ignore_errors=True)

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_size = 0
        repo_count = 0
        if self.cache_dir.exists():
            for child in self.cache_dir.iterdir():
                if child.is_dir() and (child / ".git").exists():
                    repo_count += 1
            for path in self.cache_dir.rglob("*"):
                if path.is_file() and not path.is_symlink():
                    total_size += path.stat().st_size

        return {
            "repository_count": repo_count,
            "total_size_bytes": total_size,
            "total_size_mb": total_size / (1024 * 1024),
            "cache_dir": str(self.cache_dir),
        }

    def validate(self, repositories: Iterable[Repository]) -> List[str]:
        """
        Check the cache against the registry.

        Returns:
            Human-readable descriptions of each problem found.
        """
        issues = []
        owned = set()

        for repository in repositories:
            owned.add(repository.local_path.name)
            path = repository.local_path
            if not path.exists():
                issues.append(f"{repository.name}: working copy missing ({path})")
            elif not (path / ".git").exists():
                issues.append(f"{repository.name}: not a git repository ({path})")

        if self.cache_dir.exists():
            for child in sorted(self.cache_dir.iterdir()):
                if not child.is_dir():
                    continue
                if child.name.startswith(STAGING_PREFIX):
                    issues.append(f"leftover staging directory from interrupted clone: {child}")
                elif child.name not in owned:
                    issues.append(f"orphan directory not in registry: {child}")

        return issues
