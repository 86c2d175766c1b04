"""
Core module containing configuration and the exception hierarchy.
"""

from qi.core.config import Config, QiConfig, CacheConfig, ScriptConfig, ConfigError
from qi.core.exceptions import (
    QiError,
    RegistryError,
    CacheError,
    ScriptError,
)

__all__ = [
    "Config",
    "QiConfig",
    "CacheConfig",
    "ScriptConfig",
    "ConfigError",
    "QiError",
    "RegistryError",
    "CacheError",
    "ScriptError",
]
