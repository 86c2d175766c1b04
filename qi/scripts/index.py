"""
Script discovery across cached working copies.

The index maps a bare script name to every file providing it, ordered by
repository registration order and then by path inside the repository.
Scanning is split from indexing so the index can be built from any
snapshot of paths.
"""

import logging
import os
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Sequence, Tuple

from qi.core.config import ScriptConfig
from qi.registry.repository import Repository

if TYPE_CHECKING:
    from qi.cache.store import CacheStore

logger = logging.getLogger(__name__)

# (repository name, working copy root, relative script paths)
Snapshot = Sequence[Tuple[str, Path, Sequence[str]]]


@dataclass(frozen=True)
class ScriptEntry:
    """A script file found in a cached working copy."""

    script_name: str
    repository_name: str
    absolute_path: Path
    relative_path: str


def script_name_for(relative_path: str, extension: str) -> str:
    """Basename of ``relative_path`` with the script extension removed."""
    basename = os.path.basename(relative_path)
    return basename[: -len(extension)] if basename.endswith(extension) else basename


def scan_working_copy(
    root: Path,
    extension: str = ".bash",
    search_dir: str = "",
    ignore_dirs: Iterable[str] = (".git",),
) -> List[str]:
    """
    Find script files below ``root`` in lexical path order.

    Args:
        root: Working copy root.
        extension: Script file suffix.
        search_dir: Subdirectory of ``root`` to restrict the scan to.
        ignore_dirs: Directory names that are never descended into; .git
            is always skipped.

    Returns:
        POSIX-style paths relative to ``root``.
    """
    root = Path(root)
    start = root / search_dir if search_dir else root
    if not start.is_dir():
        return []

    ignore = set(ignore_dirs) | {".git"}
    found = []
    for dirpath, dirnames, filenames in os.walk(start):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore)
        for filename in sorted(filenames):
            if not filename.endswith(extension) or filename == extension:
                continue
            path = Path(dirpath) / filename
            if path.is_file():
                found.append(path.relative_to(root).as_posix())

    return sorted(found)


def build_index(snapshot: Snapshot, extension: str = ".bash") -> "ScriptIndex":
    """
    Build a ScriptIndex from a snapshot of discovered paths.

    Repository order is taken from the snapshot; paths within a
    repository are ordered lexically.
    """
    index = ScriptIndex()
    for repository_name, root, relative_paths in snapshot:
        for relative_path in sorted(relative_paths):
            index._add(
                ScriptEntry(
                    script_name=script_name_for(relative_path, extension),
                    repository_name=repository_name,
                    absolute_path=(Path(root) / relative_path).absolute(),
                    relative_path=relative_path,
                )
            )
    return index


class ScriptIndex:
    """Mapping from script name to the ordered ScriptEntry values providing it."""

    def __init__(self):
        self._entries: Dict[str, List[ScriptEntry]] = OrderedDict()

    @classmethod
    def rebuild(
        cls,
        repositories: Iterable[Repository],
        cache: "CacheStore",
        config: ScriptConfig = None,
    ) -> "ScriptIndex":
        """
        Scan every repository that has a working copy.

        Repositories without one are skipped.
        """
        config = config or ScriptConfig()
        snapshot = []
        for repository in repositories:
            if not cache.exists(repository):
                logger.debug(f"Skipping '{repository.name}': no working copy")
                continue
            paths = scan_working_copy(
                repository.local_path,
                extension=config.extension,
                search_dir=config.search_dir,
                ignore_dirs=config.ignore_dirs,
            )
            logger.debug(f"Found {len(paths)} scripts in '{repository.name}'")
            snapshot.append((repository.name, repository.local_path, paths))

        index = build_index(snapshot, config.extension)
        logger.debug(f"Script index built: {len(index)} scripts, {len(index.names())} names")
        return index

    def _add(self, entry: ScriptEntry) -> None:
        self._entries.setdefault(entry.script_name, []).append(entry)

    def lookup(self, script_name: str) -> List[ScriptEntry]:
        """Entries providing ``script_name``; empty when there are none."""
        return list(self._entries.get(script_name, []))

    def names(self) -> List[str]:
        """Distinct script names in sorted order."""
        return sorted(self._entries)

    def entries(self) -> List[ScriptEntry]:
        """All entries, grouped by script name in sorted order."""
        return [entry for name in self.names() for entry in self._entries[name]]

    def conflicts(self) -> Dict[str, List[ScriptEntry]]:
        """Script names provided by more than one file."""
        return {
            name: list(self._entries[name])
            for name in self.names()
            if len(self._entries[name]) > 1
        }

    def by_repository(self) -> Dict[str, List[ScriptEntry]]:
        """Entries grouped by repository, in index order."""
        grouped: Dict[str, List[ScriptEntry]] = OrderedDict()
        for entries in self._entries.values():
            for entry in entries:
                grouped.setdefault(entry.repository_name, []).append(entry)
        for repository_name in grouped:
            grouped[repository_name].sort(key=lambda e: e.relative_path)
        return grouped

    def __iter__(self) -> Iterator[ScriptEntry]:
        return iter(self.entries())

    def __contains__(self, script_name: str) -> bool:
        return script_name in self._entries

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScriptIndex):
            return NotImplemented
        return list(self._entries.items()) == list(other._entries.items())
