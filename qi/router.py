"""
Command router for qi.

Translates user commands into calls on the registry, cache, script index
and conflict resolver. Holds references to those components and no other
state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from qi.cache.store import CacheStore
from qi.core.config import QiConfig
from qi.core.exceptions import (
    CloneFailedError,
    DeleteFailedError,
    ScriptNotFoundError,
    SyncFailedError,
)
from qi.registry.registry import RepositoryRegistry
from qi.registry.repository import Repository
from qi.scripts.executor import ScriptExecutor
from qi.scripts.index import ScriptEntry, ScriptIndex
from qi.scripts.resolver import ConflictResolver, SelectionPrompt
from qi.utils.validation import extract_repo_name

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Outcome of updating one repository."""

    name: str
    success: bool
    message: str
    cloned: bool = False


@dataclass
class UpdateSummary:
    """Outcome of an update over one or more repositories."""

    results: List[UpdateResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[UpdateResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[UpdateResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.failed


class CommandRouter:
    """
    High-level entry point for qi commands.

    Args:
        config: Loaded configuration.
        registry: Repository registry loaded at startup.
        cache: Cache of working copies.
        prompt: Source of selections for ambiguous script names.
        executor: Runs resolved scripts.
    """

    def __init__(
        self,
        config: QiConfig,
        registry: RepositoryRegistry,
        cache: CacheStore,
        prompt: SelectionPrompt,
        executor: ScriptExecutor = None,
    ):
        self.config = config
        self.registry = registry
        self.cache = cache
        self.prompt = prompt
        self.executor = executor or ScriptExecutor(dry_run=config.dry_run)

    def add(self, url: str, name: Optional[str] = None, branch: Optional[str] = None) -> Repository:
        """
        Register and clone a repository.

        The registry is persisted only after the clone succeeded.
        """
        name = name or extract_repo_name(url)
        repository = self.registry.add(name, url, branch)
        try:
            self.cache.clone(repository)
        except CloneFailedError:
            self.registry.discard(name)
            raise

        if not self.cache.dry_run:
            self.registry.save()
        logger.info(f"Repository '{name}' added")
        return repository

    def remove(self, name: str) -> None:
        self.registry.remove(name, self.cache)

    def update(self, name: Optional[str] = None, force: bool = False) -> UpdateSummary:
        """
        Sync one repository, or all of them.

        With a name, failures propagate. Without one, every registered
        repository is attempted and failures are collected in the summary.
        """
        summary = UpdateSummary()

        if name is not None:
            repository = self.registry.get(name)
            summary.results.append(self._update_one(repository, force))
            return summary

        for repository in self.registry.list():
            try:
                summary.results.append(self._update_one(repository, force))
            except (SyncFailedError, CloneFailedError, DeleteFailedError) as e:
                logger.error(str(e))
                summary.results.append(UpdateResult(repository.name, False, e.reason))

        logger.info(
            f"Update finished: {len(summary.succeeded)} updated, {len(summary.failed)} failed"
        )
        return summary

    def _update_one(self, repository: Repository, force: bool) -> UpdateResult:
        if not self.cache.exists(repository):
            logger.warning(f"Working copy of '{repository.name}' missing, cloning again")
            self.cache.delete(repository)
            self.cache.clone(repository)
            return UpdateResult(repository.name, True, "Cloned (working copy was missing)", cloned=True)

        before = self.cache.entry(repository)
        after = self.cache.sync(repository, force=force)
        if before and before.commit and before.commit == after.commit:
            return UpdateResult(repository.name, True, "Already up to date")
        return UpdateResult(repository.name, True, "Updated successfully")

    def list_scripts(self) -> ScriptIndex:
        return ScriptIndex.rebuild(self.registry.list(), self.cache, self.config.scripts)

    def resolve(self, script_name: str) -> ScriptEntry:
        """
        Find the one script to run for ``script_name``.

        Raises:
            ScriptNotFoundError: If no cached repository provides it.
            InvalidSelectionError: If the operator's choice is invalid.
        """
        index = self.list_scripts()
        entries = index.lookup(script_name)
        if not entries:
            raise ScriptNotFoundError(script_name)

        resolver = ConflictResolver(
            self.prompt,
            repository_urls={r.name: r.url for r in self.registry.list()},
        )
        return resolver.resolve(entries)

    def run(self, script_name: str, args: Sequence[str] = ()) -> int:
        """Resolve and execute a script, returning its exit code."""
        if self.config.auto_update:
            summary = self.update()
            for result in summary.failed:
                logger.warning(f"Auto-update of '{result.name}' failed: {result.message}")

        entry = self.resolve(script_name)
        return self.executor.execute(entry, args)

    def status(self) -> Dict[str, Any]:
        """Cache statistics plus registry/cache consistency issues."""
        stats = self.cache.stats()
        stats["registered_count"] = len(self.registry)
        stats["issues"] = self.cache.validate(self.registry.list())
        return stats

    def repository_info(self, name: str) -> Dict[str, Any]:
        repository = self.registry.get(name)
        info = repository.to_dict()
        info["cached"] = self.cache.exists(repository)
        if info["cached"]:
            git_info = self.cache.git.get_repository_info(repository.local_path)
            info["commit"] = git_info["commit_hash"]
            info["current_branch"] = git_info["branch"]
            info["last_commit"] = git_info["last_commit"]
            info["clean"] = git_info["clean"]
            info["script_count"] = len(
                ScriptIndex.rebuild([repository], self.cache, self.config.scripts)
            )
        return info

    def repositories(self) -> List[Dict[str, Any]]:
        """Registered repositories with their cached state and script counts."""
        index = self.list_scripts()
        grouped = index.by_repository()
        rows = []
        for repository in self.registry.list():
            rows.append({
                "name": repository.name,
                "url": repository.url,
                "branch": repository.branch,
                "cached": self.cache.exists(repository),
                "script_count": len(grouped.get(repository.name, [])),
            })
        return rows
