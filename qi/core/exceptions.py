"""
Custom exceptions for qi.

Provides a hierarchy of exceptions for the registry, cache and script
components, each carrying the process exit code the CLI reports.
"""

EXIT_GENERAL_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NOT_FOUND = 3
EXIT_CONFLICT = 4
EXIT_GIT_ERROR = 5
EXIT_FILE_ERROR = 6


class QiError(Exception):
    """Base exception for all qi errors."""

    exit_code = EXIT_GENERAL_ERROR

    def __init__(self, message: str, component: str = None, details: dict = None):
        super().__init__(message)
        self.component = component
        self.details = details or {}

    def __str__(self):
        base_msg = super().__str__()
        if self.component:
            return f"[{self.component}] {base_msg}"
        return base_msg


class RegistryError(QiError):
    """Raised when the registry file cannot be read or written."""

    exit_code = EXIT_FILE_ERROR

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, component="Registry", details=details)


class DuplicateNameError(RegistryError):
    """Raised when a repository name is already registered."""

    exit_code = EXIT_CONFLICT

    def __init__(self, name: str):
        super().__init__(
            f"Repository already exists: {name}",
            details={"name": name},
        )
        self.name = name


class RepositoryNotFoundError(RegistryError):
    """Raised when a repository name is not registered."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, name: str):
        super().__init__(
            f"Repository not found: {name}",
            details={"name": name},
        )
        self.name = name


class InvalidURLError(RegistryError):
    """Raised when a repository URL is empty or malformed."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, url: str, reason: str = None):
        super().__init__(
            reason or f"Invalid repository URL: {url!r}",
            details={"url": url},
        )
        self.url = url


class InvalidNameError(RegistryError):
    """Raised when a repository name contains disallowed characters."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Invalid repository name {name!r}: {reason}",
            details={"name": name, "reason": reason},
        )
        self.name = name


class CacheError(QiError):
    """Base exception for cache operations."""

    exit_code = EXIT_GIT_ERROR

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, component="Cache", details=details)


class GitCommandError(CacheError):
    """Raised when a git subprocess exits non-zero or times out."""

    def __init__(self, command: list, reason: str, returncode: int = None):
        super().__init__(
            f"{' '.join(command)} failed: {reason}",
            details={"command": command, "returncode": returncode},
        )
        self.command = command
        self.reason = reason
        self.returncode = returncode


class CloneFailedError(CacheError):
    """Raised when a repository cannot be cloned into the cache."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Failed to clone repository '{name}': {reason}",
            details={"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason


class SyncFailedError(CacheError):
    """Raised when a cached working copy cannot be brought up to date."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Failed to update repository '{name}': {reason}",
            details={"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason


class DeleteFailedError(CacheError):
    """Raised when a working copy cannot be removed from the cache."""

    exit_code = EXIT_FILE_ERROR

    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Failed to remove repository '{name}' from cache: {reason}",
            details={"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason


class ScriptError(QiError):
    """Base exception for script lookup and execution."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, component="Script", details=details)


class ScriptNotFoundError(ScriptError):
    """Raised when no cached repository provides a script."""

    exit_code = EXIT_NOT_FOUND

    def __init__(self, script_name: str, path: str = None):
        message = f"Script not found: {script_name}"
        if path:
            message = f"Script file not found: {path}"
        super().__init__(
            message,
            details={"script_name": script_name, "path": path},
        )
        self.script_name = script_name


class InvalidSelectionError(ScriptError):
    """Raised when the operator picks no valid candidate."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, selection, count: int, reason: str = None):
        super().__init__(
            reason or f"Invalid selection {selection!r}: expected a number between 1 and {count}",
            details={"selection": selection, "count": count},
        )
        self.selection = selection
        self.count = count
