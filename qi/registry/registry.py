"""
Durable registry of known repositories.

The registry is a JSON file holding one record per repository in
insertion order. It is loaded once at startup and written back after a
mutating operation whose filesystem side has succeeded.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from qi.core.exceptions import (
    DuplicateNameError,
    InvalidNameError,
    InvalidURLError,
    RegistryError,
    RepositoryNotFoundError,
)
from qi.registry.repository import Repository
from qi.utils.validation import validate_name, validate_url

if TYPE_CHECKING:
    from qi.cache.store import CacheStore

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1


class RepositoryRegistry:
    """
    Ordered collection of registered repositories backed by a JSON file.

    ``local_path`` of every repository is ``cache_dir / name``.
    """

    def __init__(self, path: Path, cache_dir: Path, default_branch: str = "main"):
        self.path = Path(path)
        self.cache_dir = Path(cache_dir)
        self.default_branch = default_branch
        self._repositories: Dict[str, Repository] = {}

    @classmethod
    def load(
        cls,
        path: Path,
        cache_dir: Path,
        default_branch: str = "main",
    ) -> "RepositoryRegistry":
        """
        Load the registry from disk, or start empty if the file is absent.

        Working copy paths are derived from ``cache_dir``; the stored
        ``local_path`` is informational.

        Raises:
            RegistryError: If the file exists but cannot be parsed.
        """
        registry = cls(path, cache_dir, default_branch)
        if not registry.path.exists():
            logger.debug(f"Registry file not found, starting empty: {registry.path}")
            return registry

        try:
            with open(registry.path, "r") as f:
                data = json.load(f)
            for record in data.get("repositories", []):
                repository = Repository.from_dict(record)
                repository.local_path = registry.local_path_for(repository.name)
                registry._repositories[repository.name] = repository
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise RegistryError(
                f"Failed to read registry {registry.path}: {e}",
                details={"path": str(registry.path)},
            )

        logger.debug(f"Loaded {len(registry)} repositories from {registry.path}")
        return registry

    def save(self) -> None:
        """Atomically write the registry to disk."""
        data = {
            "version": REGISTRY_VERSION,
            "repositories": [r.to_dict() for r in self._repositories.values()],
        }

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".repositories-", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise RegistryError(
                f"Failed to write registry {self.path}: {e}",
                details={"path": str(self.path)},
            )

        logger.debug(f"Saved {len(self)} repositories to {self.path}")

    def local_path_for(self, name: str) -> Path:
        """Cache location of the working copy for ``name``."""
        return self.cache_dir / name

    def add(self, name: str, url: str, branch: Optional[str] = None) -> Repository:
        """
        Register a repository. Does not touch the cache and does not persist.

        Raises:
            InvalidURLError: If the URL is empty or malformed.
            InvalidNameError: If the name is empty, reserved or has bad characters.
            DuplicateNameError: If the name is already registered.
        """
        is_valid, error = validate_url(url)
        if not is_valid:
            raise InvalidURLError(url, error)

        is_valid, error = validate_name(name)
        if not is_valid:
            raise InvalidNameError(name, error)

        if name in self._repositories:
            raise DuplicateNameError(name)

        repository = Repository(
            name=name,
            url=url.strip(),
            branch=branch or self.default_branch,
            local_path=self.local_path_for(name),
        )
        self._repositories[name] = repository
        logger.debug(f"Registered repository '{name}' ({repository.url})")
        return repository

    def discard(self, name: str) -> None:
        """Drop an entry from memory without touching the cache or the file."""
        self._repositories.pop(name, None)

    def remove(self, name: str, cache: "CacheStore") -> None:
        """
        Delete the repository's working copy, then its registry entry.

        Raises:
            RepositoryNotFoundError: If the name is unknown.
            DeleteFailedError: If the working copy cannot be removed; the
                registry entry is kept.
        """
        repository = self.get(name)
        cache.delete(repository)
        if cache.dry_run:
            return
        del self._repositories[name]
        self.save()
        logger.info(f"Removed repository '{name}' from registry")

    def get(self, name: str) -> Repository:
        """
        Get a repository by name.

        Raises:
            RepositoryNotFoundError: If the name is unknown.
        """
        try:
            return self._repositories[name]
        except KeyError:
            raise RepositoryNotFoundError(name)

    def list(self) -> List[Repository]:
        """All repositories in registration order."""
        return list(self._repositories.values())

    def contains(self, name: str) -> bool:
        return name in self._repositories

    def __contains__(self, name: str) -> bool:
        return self.contains(name)

    def __len__(self) -> int:
        return len(self._repositories)

    def __iter__(self):
        return iter(self.list())
