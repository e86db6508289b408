"""Per-device session state and operation serialisation."""

import threading
import typing as t
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import OperationInProgressError
from .util.logging import get_logger

logger = get_logger(__name__)


class Tweak(Enum):
    """Tweak categories; the value names the workspace subdirectory."""

    FOOTNOTE = "Footnote"
    STATUS_BAR = "StatusBar"
    SPRINGBOARD_OPTIONS = "SpringboardOptions"
    SKIP_SETUP = "SkipSetup"
    THEMES = "AppliedTheme"
    DYNAMIC_ISLAND = "DynamicIsland"
    INTERNAL_OPTIONS = "InternalOptions"

    @classmethod
    def from_name(cls, name: str) -> "Tweak":
        """Look a tweak up by value or member name, case-insensitively."""
        wanted = name.strip().lower().replace("-", "_")
        for tweak in cls:
            if wanted in (tweak.value.lower(), tweak.name.lower()):
                return tweak
        raise ValueError(f"Unknown tweak: {name}")


class AcquireState(Enum):
    """Disk image acquisition progress."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RESOLVED = "resolved"


class MountState(Enum):
    """Disk image mount progress."""

    IDLE = "idle"
    MOUNTING = "mounting"
    MOUNTED = "mounted"
    FAILED = "failed"


@dataclass
class SessionStatus:
    """Observable status flags of a session."""

    image_state: AcquireState = AcquireState.PENDING
    image_result: t.Optional[t.Any] = None
    mount_state: MountState = MountState.IDLE

    @property
    def downloading(self) -> bool:
        return self.image_state is AcquireState.IN_FLIGHT

    @property
    def loaded(self) -> bool:
        return self.image_state is AcquireState.RESOLVED

    @property
    def succeeded(self) -> bool:
        return self.loaded and self.image_result is not None and self.image_result.ok

    @property
    def mounted(self) -> bool:
        return self.mount_state is MountState.MOUNTED

    @property
    def mounting_failed(self) -> bool:
        return self.mount_state is MountState.FAILED


@dataclass
class Session:
    """Context for the currently selected device.

    Switching device means creating a new session; nothing of the old one's
    in-memory state carries over and no workspace is deleted.
    """

    device: t.Any
    workspace: t.Optional[Path] = None
    available: bool = False
    enabled_tweaks: t.Set[Tweak] = field(default_factory=set)
    status: SessionStatus = field(default_factory=SessionStatus)

    @property
    def device_id(self) -> str:
        return self.device.identifier

    @property
    def current_workspace(self) -> t.Optional[Path]:
        return self.workspace

    def set_enabled(self, tweak: Tweak, enabled: bool) -> None:
        if enabled:
            self.enabled_tweaks.add(tweak)
        else:
            self.enabled_tweaks.discard(tweak)

    def is_enabled(self, tweak: Tweak) -> bool:
        return tweak in self.enabled_tweaks

    def reset(self) -> None:
        """Forget enabled tweaks and status flags."""
        self.enabled_tweaks.clear()
        self.status = SessionStatus()


class OperationGuard:
    """Non-blocking per-device locks, one per kind of operation.

    Holding ``("apply", udid)`` never blocks ``("image", udid)`` or any
    other device.
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: t.Dict[t.Tuple[str, str], threading.Lock] = {}

    def _lock_for(self, operation: str, device_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault((operation, device_id), threading.Lock())

    def is_busy(self, operation: str, device_id: str) -> bool:
        return self._lock_for(operation, device_id).locked()

    @contextmanager
    def hold(self, operation: str, device_id: str):
        """Run the body as the only ``operation`` for ``device_id``.

        Raises:
            OperationInProgressError: If one is already in flight
        """
        lock = self._lock_for(operation, device_id)
        if not lock.acquire(blocking=False):
            logger.warning(f"Rejected concurrent '{operation}' for {device_id}")
            raise OperationInProgressError(operation, device_id)
        try:
            yield
        finally:
            lock.release()


operation_guard = OperationGuard()
