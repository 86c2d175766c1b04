"""
Configuration management for qi.

Provides centralized configuration for the registry, cache and script
index with sensible defaults, a JSON configuration file and QI_*
environment overrides.
"""

import os
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from qi.core.exceptions import QiError

DEFAULT_CONFIG_DIR = "~/.qi"
DEFAULT_CACHE_DIR = "~/.qi/cache"
CONFIG_FILE_NAME = "config.json"
REGISTRY_FILE_NAME = "repositories.json"

_TRUE_VALUES = ("true", "yes", "1")
_FALSE_VALUES = ("false", "no", "0")


class ConfigError(QiError):
    """Raised when a configuration value is invalid."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, component="Config", details=details)


def parse_bool(value, key: str = "value") -> bool:
    """Parse true/false/yes/no/1/0 (case-insensitive) into a bool."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(
        f"Invalid value for {key}: {value!r} (must be true/false)",
        details={"key": key, "value": value},
    )


@dataclass
class CacheConfig:
    """Configuration for the repository cache."""

    # Directory holding one working copy per registered repository
    cache_dir: str = DEFAULT_CACHE_DIR

    # Branch checked out when a repository is added without --branch
    default_branch: str = "main"

    # Timeout for git operations (seconds)
    git_timeout: int = 300


@dataclass
class ScriptConfig:
    """Configuration for script discovery."""

    # File suffix identifying a script; stripped to form the script name
    extension: str = ".bash"

    # Subdirectory of each working copy to scan (empty = whole working copy)
    search_dir: str = ""

    # Directory names never descended into
    ignore_dirs: List[str] = field(default_factory=lambda: [".git"])


@dataclass
class QiConfig:
    """Master configuration combining all sections."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    scripts: ScriptConfig = field(default_factory=ScriptConfig)

    # Directory holding config.json and repositories.json
    config_dir: str = DEFAULT_CONFIG_DIR

    # Update all repositories before running a script
    auto_update: bool = False

    # Enable verbose logging
    verbose: bool = False

    # Log actions instead of touching the cache
    dry_run: bool = False

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser() / CONFIG_FILE_NAME

    @property
    def registry_path(self) -> Path:
        return Path(self.config_dir).expanduser() / REGISTRY_FILE_NAME

    @property
    def cache_path(self) -> Path:
        return Path(self.cache.cache_dir).expanduser()

    def validate(self) -> None:
        """Check required values; raise ConfigError on the first problem."""
        if not self.cache.cache_dir:
            raise ConfigError("Cache directory cannot be empty")
        if not self.cache.default_branch:
            raise ConfigError("Default branch cannot be empty")
        if not self.scripts.extension:
            raise ConfigError("Script extension cannot be empty")
        if self.cache.git_timeout <= 0:
            raise ConfigError(
                f"git_timeout must be positive, got {self.cache.git_timeout}"
            )


class Config:
    """
    Central configuration manager providing access to all settings.

    Settings are layered: defaults, then the JSON configuration file,
    then QI_* environment variables (a .env file is honoured).
    """

    _instance: Optional["Config"] = None
    _config: QiConfig = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._config = QiConfig()
        return cls._instance

    @classmethod
    def get(cls) -> QiConfig:
        """Get the current configuration."""
        if cls._instance is None:
            cls()
        return cls._instance._config

    @classmethod
    def reset(cls) -> QiConfig:
        """Discard the current configuration and return fresh defaults."""
        instance = cls()
        instance._config = QiConfig()
        return instance._config

    @classmethod
    def load(cls, config_dir: Optional[str] = None) -> QiConfig:
        """
        Load the layered configuration used by the CLI.

        Args:
            config_dir: Overrides QI_CONFIG_DIR and the default ~/.qi.

        Returns:
            The validated QiConfig.
        """
        load_dotenv()
        config_dir = config_dir or os.getenv("QI_CONFIG_DIR") or DEFAULT_CONFIG_DIR
        config_path = Path(config_dir).expanduser() / CONFIG_FILE_NAME

        config = cls.reset()
        if config_path.exists():
            config = cls.load_from_file(str(config_path))

        config.config_dir = config_dir
        if config.cache.cache_dir == DEFAULT_CACHE_DIR:
            config.cache.cache_dir = str(Path(config_dir) / "cache")

        config = cls.load_from_env()
        config.validate()
        return config

    @classmethod
    def load_from_file(cls, config_path: str) -> QiConfig:
        """
        Load configuration from a JSON file.

        Args:
            config_path: Path to the configuration file.

        Returns:
            Loaded QiConfig instance.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid configuration file {config_path}: {e}",
                details={"path": str(config_path)},
            )

        instance = cls()
        instance._config = cls._dict_to_config(data)
        return instance._config

    @classmethod
    def load_from_env(cls) -> QiConfig:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with QI_.

        Returns:
            QiConfig with environment overrides applied.
        """
        instance = cls()
        config = instance._config

        if os.getenv("QI_CACHE_DIR"):
            config.cache.cache_dir = os.getenv("QI_CACHE_DIR")

        if os.getenv("QI_DEFAULT_BRANCH"):
            config.cache.default_branch = os.getenv("QI_DEFAULT_BRANCH")

        if os.getenv("QI_GIT_TIMEOUT"):
            try:
                config.cache.git_timeout = int(os.getenv("QI_GIT_TIMEOUT"))
            except ValueError:
                raise ConfigError(
                    f"Invalid value for QI_GIT_TIMEOUT: {os.getenv('QI_GIT_TIMEOUT')!r}"
                )

        if os.getenv("QI_AUTO_UPDATE"):
            config.auto_update = parse_bool(os.getenv("QI_AUTO_UPDATE"), "QI_AUTO_UPDATE")

        if os.getenv("QI_VERBOSE"):
            config.verbose = parse_bool(os.getenv("QI_VERBOSE"), "QI_VERBOSE")

        return config

    @staticmethod
    def _dict_to_config(data: dict) -> QiConfig:
        """Convert a dictionary to QiConfig."""
        config = QiConfig()

        try:
            if "cache" in data:
                config.cache = CacheConfig(**data["cache"])

            if "scripts" in data:
                config.scripts = ScriptConfig(**data["scripts"])
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}")

        if "config_dir" in data:
            config.config_dir = data["config_dir"]

        if "auto_update" in data:
            config.auto_update = parse_bool(data["auto_update"], "auto_update")

        if "verbose" in data:
            config.verbose = parse_bool(data["verbose"], "verbose")

        return config

    @classmethod
    def save_to_file(cls, config_path: str) -> None:
        """
        Save current configuration to a JSON file.

        Args:
            config_path: Path to save the configuration file.
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        config = cls.get()
        data = cls._config_to_dict(config)

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def _config_to_dict(config: QiConfig) -> dict:
        """Convert QiConfig to a dictionary."""
        return {
            "cache": {
                "cache_dir": config.cache.cache_dir,
                "default_branch": config.cache.default_branch,
                "git_timeout": config.cache.git_timeout,
            },
            "scripts": {
                "extension": config.scripts.extension,
                "search_dir": config.scripts.search_dir,
                "ignore_dirs": config.scripts.ignore_dirs,
            },
            "auto_update": config.auto_update,
            "verbose": config.verbose,
        }
