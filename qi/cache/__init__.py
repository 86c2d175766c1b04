"""
Local cache of repository working copies and the git operations behind it.
"""

from qi.cache.git_handler import GitHandler
from qi.cache.store import CacheEntry, CacheStore

__all__ = [
    "GitHandler",
    "CacheEntry",
    "CacheStore",
]
