"""Timestamp-aware directory merging."""

import shutil
from dataclasses import dataclass
from pathlib import Path

from ..errors import SyncError
from ..util.logging import get_logger
from ..util.paths import visible_entries

logger = get_logger(__name__)


@dataclass
class MergeStats:
    """What a merge did."""

    copied: int = 0
    replaced: int = 0
    skipped: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.copied or self.replaced)


def merge_directory(source: Path, destination: Path) -> MergeStats:
    """Merge the ``source`` tree into ``destination``.

    Entries missing from the destination are copied wholesale, shared
    directories are merged recursively, and a destination file is replaced
    only when the source file's modification time is strictly newer.
    Hidden entries in the source are ignored. Copies keep their timestamps,
    so re-running a merge with unchanged inputs copies nothing.

    Raises:
        SyncError: On any filesystem failure; work already done is kept
    """
    stats = MergeStats()
    try:
        _merge(Path(source), Path(destination), stats)
    except SyncError:
        raise
    except OSError as e:
        raise SyncError(f"Failed to merge {source} into {destination}", details=str(e)) from e

    logger.debug(
        f"Merged {source} -> {destination}: "
        f"{stats.copied} copied, {stats.replaced} replaced, {stats.skipped} kept"
    )
    return stats


def _merge(source: Path, destination: Path, stats: MergeStats) -> None:
    destination.mkdir(parents=True, exist_ok=True)

    for item in visible_entries(source):
        target = destination / item.name

        if not target.exists():
            _copy(item, target)
            stats.copied += 1
        elif target.is_dir():
            if not item.is_dir():
                raise SyncError(f"Cannot replace directory {target} with a file", details=str(item))
            _merge(item, target, stats)
        elif item.is_dir():
            raise SyncError(f"Cannot replace file {target} with a directory", details=str(item))
        elif target.stat().st_mtime_ns < item.stat().st_mtime_ns:
            target.unlink()
            _copy(item, target)
            stats.replaced += 1
        else:
            stats.skipped += 1


def _copy(item: Path, target: Path) -> None:
    if item.is_dir():
        shutil.copytree(item, target, symlinks=True)
    else:
        shutil.copy2(item, target, follow_symlinks=False)
