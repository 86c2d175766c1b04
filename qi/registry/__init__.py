"""
Repository registry: the persistent list of repositories qi manages.
"""

from qi.registry.repository import Repository
from qi.registry.registry import RepositoryRegistry

__all__ = [
    "Repository",
    "RepositoryRegistry",
]
