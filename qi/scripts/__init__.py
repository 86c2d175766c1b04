"""
Script discovery, name conflict resolution and execution.
"""

from qi.scripts.index import ScriptEntry, ScriptIndex, build_index, scan_working_copy
from qi.scripts.resolver import ConflictResolver, SelectionPrompt
from qi.scripts.executor import ScriptExecutor

__all__ = [
    "ScriptEntry",
    "ScriptIndex",
    "build_index",
    "scan_working_copy",
    "ConflictResolver",
    "SelectionPrompt",
    "ScriptExecutor",
]
