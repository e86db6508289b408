"""Zip archive extraction used for downloaded disk images."""

import shutil
import zipfile
from pathlib import Path
from typing import List

from ..util.logging import get_logger

logger = get_logger(__name__)


def is_safe_member(name: str) -> bool:
    """Reject absolute member names and names that climb out with ``..``."""
    if not name or name.startswith(("/", "\\")):
        return False
    parts = Path(name.replace("\\", "/")).parts
    if parts and parts[0].endswith(":"):
        return False
    return ".." not in parts


def extract_zip(archive_path: Path, output_dir: Path) -> List[Path]:
    """Extract every member of ``archive_path`` below ``output_dir``.

    macOS resource-fork folders (``__MACOSX``) are skipped. Raises
    ``zipfile.BadZipFile`` for corrupt archives and ``ValueError`` when a
    member would land outside ``output_dir``.
    """
    extracted = []
    output_dir.mkdir(parents=True, exist_ok=True)
    root = output_dir.resolve()

    with zipfile.ZipFile(archive_path, "r") as archive:
        for info in archive.infolist():
            name = info.filename
            if name.startswith("__MACOSX/"):
                continue
            if not is_safe_member(name):
                raise ValueError(f"Unsafe archive member: {name}")

            target = (output_dir / name).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Unsafe archive member: {name}")

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as source, open(target, "wb") as sink:
                shutil.copyfileobj(source, sink)
            extracted.append(target)

    logger.debug(f"Extracted {len(extracted)} files from {archive_path} to {output_dir}")
    return extracted
