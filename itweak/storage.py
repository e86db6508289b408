"""On-disk layout of the documents root."""

import typing as t
from pathlib import Path

from .util.paths import safe_filename

TEMPLATE_DIR = Path(__file__).parent / "template"


class StorageLayout:
    """Resolves every persisted location below the documents root.

    ``DevDisks/{version}/`` is the image cache, ``Workspace/{device}/`` holds
    per-device tweak sources, ``EnabledTweaks/{device}/`` is the staging area
    and ``Backup/{device}/`` receives the generated backup. Applies to
    different devices never share a directory.
    """

    def __init__(
        self,
        base_path: Path,
        template_dir: t.Optional[Path] = None,
        payload_name: str = "DeveloperDiskImage.dmg",
    ) -> None:
        """Initialize the layout.

        Args:
            base_path: Documents root
            template_dir: Workspace template tree (bundled one if None)
            payload_name: Image file name inside a cache entry
        """
        self.base_path = Path(base_path)
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        self.payload_name = payload_name

    @classmethod
    def from_config(cls, config) -> "StorageLayout":
        return cls(
            config.documents_root,
            template_dir=config.template_dir,
            payload_name=config.images.payload_name,
        )

    @property
    def disk_images_dir(self) -> Path:
        return self.base_path / "DevDisks"

    @property
    def workspace_root(self) -> Path:
        return self.base_path / "Workspace"

    @property
    def staging_root(self) -> Path:
        return self.base_path / "EnabledTweaks"

    @property
    def backup_root(self) -> Path:
        return self.base_path / "Backup"

    def get_workspace_dir(self, device_id: str) -> Path:
        """Get the workspace directory for a specific device.

        Args:
            device_id: Device identifier (UDID)

        Returns:
            Path to the device workspace
        """
        return self.workspace_root / safe_filename(device_id)

    def get_staging_dir(self, device_id: str) -> Path:
        """Get the staging directory for a device's next apply."""
        return self.staging_root / safe_filename(device_id)

    def get_backup_dir(self, device_id: str) -> Path:
        """Get the generated backup directory for a device."""
        return self.backup_root / safe_filename(device_id)

    def get_image_dir(self, version) -> Path:
        """Get the cache entry directory for a target version."""
        return self.disk_images_dir / str(version)

    def get_image_path(self, version) -> Path:
        """Get the disk image payload path for a target version."""
        return self.get_image_dir(version) / self.payload_name

    def has_image(self, version) -> bool:
        """Check that a cache entry exists and holds the payload."""
        return self.get_image_dir(version).is_dir() and self.get_image_path(version).is_file()
