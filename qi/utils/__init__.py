"""
Utility functions and helpers.
"""

from qi.utils.logging_config import setup_logging, get_logger
from qi.utils.validation import validate_name, validate_url, extract_repo_name

__all__ = [
    "setup_logging",
    "get_logger",
    "validate_name",
    "validate_url",
    "extract_repo_name",
]
