"""
Input validation utilities.

Provides validation for repository URLs and names, and derivation of a
repository name from its URL.
"""

import re
from typing import Optional, Tuple

_HOST = r"[a-zA-Z0-9._-]+"
_PATH = r"[a-zA-Z0-9._/~-]+"

URL_PATTERNS = [
    re.compile(rf"^https?://(?:[^@/\s]+@)?{_HOST}(?::\d+)?/{_PATH}$"),
    re.compile(rf"^ssh://(?:[^@/\s]+@)?{_HOST}(?::\d+)?/{_PATH}$"),
    re.compile(rf"^git://{_HOST}(?::\d+)?/{_PATH}$"),
    re.compile(rf"^[a-zA-Z0-9._-]+@{_HOST}:{_PATH}$"),
    re.compile(r"^file://\S+$"),
]

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")

RESERVED_NAMES = {".", ".."}
RESERVED_PREFIX = ".qi"


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a git repository URL.

    Accepts http(s), ssh, git and file URLs as well as scp-style
    ``user@host:path`` addresses.

    Args:
        url: URL to validate.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not url or not url.strip():
        return False, "URL cannot be empty"

    url = url.strip()
    for pattern in URL_PATTERNS:
        if pattern.match(url):
            return True, None

    return False, f"Invalid repository URL: {url}"


def validate_name(name: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a repository name.

    Args:
        name: Name to validate.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not name:
        return False, "name cannot be empty"

    if name in RESERVED_NAMES or name.startswith(RESERVED_PREFIX):
        return False, "name is reserved"

    if not NAME_PATTERN.match(name):
        return False, "only letters, numbers, dots, dashes and underscores are allowed"

    return True, None


def sanitize_name(name: str) -> str:
    """Replace disallowed characters and trim leading/trailing dots and underscores."""
    name = re.sub(r"[^a-zA-Z0-9._-]", "_", name)
    name = name.strip("._")
    return name or "repo"


def extract_repo_name(url: str) -> str:
    """
    Derive a repository name from the basename of its URL.

    Examples:
        https://github.com/user/repo.git -> repo
        git@github.com:user/tools.git -> tools
    """
    path = url.strip().rstrip("/")
    basename = re.split(r"[/:]", path)[-1]
    if basename.endswith(".git"):
        basename = basename[: -len(".git")]
    return sanitize_name(basename)
