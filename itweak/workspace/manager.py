"""Per-device workspace management."""

import typing as t
from pathlib import Path

from rich.tree import Tree

from ..errors import SyncError, ToolNotFoundError
from ..session import Session
from ..storage import StorageLayout
from ..util.logging import get_logger
from ..util.paths import visible_entries
from .sync import MergeStats, merge_directory

logger = get_logger(__name__)


class WorkspaceManager:
    """Creates and seeds device workspaces and opens device sessions."""

    def __init__(self, layout: StorageLayout, min_supported_major: int = 15) -> None:
        self.layout = layout
        self.min_supported_major = min_supported_major

    def ensure_workspace(self, device_id: str) -> Path:
        """Create the workspace for ``device_id`` and merge the template in.

        Files already in the workspace are only replaced by strictly newer
        template files, so user edits survive re-seeding.

        Raises:
            ToolNotFoundError: If the template tree is missing
            SyncError: If the workspace cannot be created or seeded
        """
        workspace = self.layout.get_workspace_dir(device_id)
        for directory in (self.layout.workspace_root, workspace):
            if not directory.exists():
                try:
                    directory.mkdir(parents=True)
                except OSError as e:
                    raise SyncError(f"Error creating {directory}", details=str(e)) from e
                logger.info(f"Created {directory}")

        template = self.layout.template_dir
        if not template.is_dir():
            raise ToolNotFoundError(f"Workspace template not found: {template}")

        stats = self.seed(workspace)
        if stats.changed:
            logger.info(
                f"Seeded workspace {workspace} ({stats.copied} new, {stats.replaced} updated)"
            )
        return workspace

    def seed(self, workspace: Path) -> MergeStats:
        """Merge the template tree into an existing workspace."""
        return merge_directory(self.layout.template_dir, workspace)

    def open_session(self, device) -> Session:
        """Make ``device`` current.

        Devices older than the minimum supported major version get a session
        marked unavailable and no workspace.
        """
        session = Session(device=device)
        if not device.is_supported(self.min_supported_major):
            logger.warning(
                f"{device.display_name} is not supported (needs iOS {self.min_supported_major}+)"
            )
            return session

        session.workspace = self.ensure_workspace(device.identifier)
        session.available = True
        logger.debug(f"Current workspace: {session.workspace}")
        return session


def build_tree(path: Path, tree: t.Optional[Tree] = None) -> Tree:
    """Render a directory as a rich tree, hidden entries left out."""
    if tree is None:
        tree = Tree(f"[bold]{path}[/bold]")
    try:
        entries = visible_entries(path)
    except OSError as e:
        logger.error(f"Cannot list {path}: {e}")
        return tree

    for entry in entries:
        if entry.is_dir():
            build_tree(entry, tree.add(f"[cyan]{entry.name}/[/cyan]"))
        else:
            tree.add(entry.name)
    return tree
