"""Utility module initialization."""

from .compression import extract_zip, is_safe_member
from .logging import get_logger, setup_logging
from .paths import (
    ensure_directory,
    is_hidden,
    remove_path,
    reset_directory,
    safe_filename,
    visible_entries,
)

__all__ = [
    # compression
    "extract_zip",
    "is_safe_member",
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "ensure_directory",
    "is_hidden",
    "remove_path",
    "reset_directory",
    "safe_filename",
    "visible_entries",
]
