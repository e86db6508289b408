"""Capability interface for the external device tools."""

import abc
import typing as t
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import VersionParseError


@dataclass(frozen=True)
class Device:
    """A connected iOS device."""

    identifier: str
    name: str
    version: str

    @property
    def display_name(self) -> str:
        """Get a human-readable device name."""
        return f"{self.name} (iOS {self.version})"

    @property
    def parsed_version(self):
        from ..images.version import Version

        try:
            return Version.parse(self.version)
        except VersionParseError:
            return None

    def is_supported(self, min_major: int) -> bool:
        """Whether tweaks can be applied to this device at all."""
        version = self.parsed_version
        return version is not None and version.major >= min_major


class MountOutcome(Enum):
    """Result of asking the device to mount a disk image."""

    MOUNTED = "mounted"
    IMAGE_MOUNT_FAILED = "image_mount_failed"


class DeviceToolGateway(abc.ABC):
    """One method per external device tool operation.

    Implementations raise :class:`~itweak.errors.ToolNotFoundError` when a
    tool is missing and :class:`~itweak.errors.ExternalToolError` when a tool
    fails. Test doubles subclass this with canned results.
    """

    @abc.abstractmethod
    def list_devices(self) -> t.List[Device]:
        """Enumerate connected devices with their name and OS version."""

    @abc.abstractmethod
    def device_name(self, device_id: str) -> str:
        """Query the user-visible name of a device."""

    @abc.abstractmethod
    def device_version(self, device_id: str) -> str:
        """Query the installed OS version of a device."""

    @abc.abstractmethod
    def mount_image(self, device_id: str, image_path: Path) -> MountOutcome:
        """Mount a developer disk image on the device."""

    @abc.abstractmethod
    def generate_backup(self, source_dir: Path, backup_dir: Path) -> None:
        """Build a restorable backup in ``backup_dir`` from ``source_dir``."""

    @abc.abstractmethod
    def restore_backup(self, device_id: str, backup_dir: Path) -> None:
        """Restore ``backup_dir`` to the device, system data only."""

    @abc.abstractmethod
    def needs_mount(self, device_id: str) -> bool:
        """Whether the device still lacks a mounted developer disk image."""

    @abc.abstractmethod
    def set_location(self, device_id: str, latitude: str, longitude: str) -> bool:
        """Simulate a GPS location. Returns False when the tool reports failure."""

    @abc.abstractmethod
    def reset_location(self, device_id: str) -> bool:
        """Stop simulating a location. Returns False when the tool reports failure."""

    @abc.abstractmethod
    def home_screen_apps(self, device_id: str) -> t.Dict[str, str]:
        """Map bundle identifiers to display names for home screen apps."""

    @abc.abstractmethod
    def home_screen_pages(self, device_id: str) -> int:
        """Number of home screen pages."""

    def get_device(self, device_id: str) -> t.Optional[Device]:
        """Find a connected device by identifier."""
        for device in self.list_devices():
            if device.identifier == device_id:
                return device
        return None
