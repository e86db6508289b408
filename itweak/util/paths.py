"""Utility functions for path operations."""

import shutil
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_hidden(path: Path) -> bool:
    """Return True for dot-files and dot-directories."""
    return path.name.startswith(".")


def visible_entries(directory: Path) -> list:
    """List the non-hidden entries of a directory, sorted by name."""
    return sorted(
        (entry for entry in directory.iterdir() if not is_hidden(entry)),
        key=lambda entry: entry.name,
    )


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def reset_directory(path: Path) -> Path:
    """Empty a directory, creating it if it is missing.

    Every child is removed, hidden ones included.
    """
    if path.exists():
        for child in path.iterdir():
            remove_path(child)
    else:
        path.mkdir(parents=True)
    return path


def safe_filename(filename: str) -> str:
    """Create a safe filename by removing/replacing problematic characters."""
    replacements = {
        "/": "_",
        "\\": "_",
        ":": "_",
        "*": "_",
        "?": "_",
        '"': "_",
        "<": "_",
        ">": "_",
        "|": "_",
        "\n": "_",
        "\r": "_",
        "\t": "_",
    }

    safe_name = filename
    for old, new in replacements.items():
        safe_name = safe_name.replace(old, new)

    # Remove leading/trailing whitespace and dots
    safe_name = safe_name.strip(" .")

    if not safe_name:
        safe_name = "unknown"

    return safe_name
