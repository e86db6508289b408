"""Workspace module initialization."""

from .manager import WorkspaceManager, build_tree
from .sync import MergeStats, merge_directory

__all__ = [
    # sync
    "MergeStats",
    "merge_directory",
    # manager
    "WorkspaceManager",
    "build_tree",
]
