"""Mounting cached developer disk images on a device."""

import typing as t
from dataclasses import dataclass
from pathlib import Path

from ..errors import ITweakError
from ..idevice.gateway import DeviceToolGateway, MountOutcome
from ..session import MountState, Session
from ..storage import StorageLayout
from ..util.logging import get_logger

logger = get_logger(__name__)


@dataclass
class MountResult:
    ok: bool
    image_path: t.Optional[Path] = None
    reason: t.Optional[str] = None


class ImageMounter:
    """Mounts the cache entry for the session device's version."""

    def __init__(self, gateway: DeviceToolGateway, layout: StorageLayout) -> None:
        self.gateway = gateway
        self.layout = layout

    def mount(self, session: Session) -> MountResult:
        session.status.mount_state = MountState.MOUNTING
        result = self._mount(session)
        session.status.mount_state = MountState.MOUNTED if result.ok else MountState.FAILED
        if not result.ok:
            logger.error(result.reason)
        return result

    def _mount(self, session: Session) -> MountResult:
        target = session.device.parsed_version
        if target is None:
            return MountResult(False, reason=f"Unreadable device version {session.device.version!r}")

        image_path = self.layout.get_image_path(target)
        if not image_path.is_file():
            return MountResult(False, reason=f"{self.layout.payload_name} not found for version {target}")

        try:
            outcome = self.gateway.mount_image(session.device_id, image_path)
        except ITweakError as e:
            return MountResult(False, image_path, reason=f"Error mounting image: {e}")

        if outcome is MountOutcome.IMAGE_MOUNT_FAILED:
            return MountResult(False, image_path, reason="Failed to mount the developer image!")

        logger.info(f"Mounted {image_path} on {session.device_id}")
        return MountResult(True, image_path)
