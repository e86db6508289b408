"""Developer disk image acquisition into the local image cache."""

import shutil
import tempfile
import threading
import typing as t
import zipfile
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import ITweakError, ResolutionError, SyncError
from ..session import AcquireState, OperationGuard, Session, SessionStatus, operation_guard
from ..storage import StorageLayout
from ..util.compression import extract_zip
from ..util.logging import get_logger
from ..util.paths import ensure_directory, remove_path
from .releases import ReleaseIndexClient
from .version import Version, resolve_best_release

logger = get_logger(__name__)

IMAGE_OPERATION = "image"


class ImageStatus(Enum):
    """Outcome of an acquisition."""

    ALREADY_PRESENT = "already_present"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class AcquireResult:
    """Result of :meth:`ReleaseAcquirer.ensure_image`."""

    status: ImageStatus
    target: t.Optional[Version] = None
    resolved: t.Optional[Version] = None
    image_path: t.Optional[Path] = None
    reason: t.Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not ImageStatus.FAILED


class ReleaseAcquirer:
    """Makes sure the image cache holds a usable image for a target version.

    The cache slot is named after the *target* version even when the best
    available release is an older one, so ``DevDisks/{target}`` always means
    "best image for this target".
    """

    def __init__(
        self,
        layout: StorageLayout,
        index: ReleaseIndexClient,
        extraction_root: t.Optional[Path] = None,
        guard: OperationGuard = operation_guard,
        max_workers: int = 4,
        show_progress: bool = False,
    ) -> None:
        self.layout = layout
        self.index = index
        self.extraction_root = Path(extraction_root) if extraction_root else Path(tempfile.gettempdir())
        self.guard = guard
        self.show_progress = show_progress
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="itweak-image")
        self._slot_locks: t.Dict[Version, threading.Lock] = {}
        self._slot_registry = threading.Lock()

    @classmethod
    def from_config(cls, config, layout: t.Optional[StorageLayout] = None, **kwargs) -> "ReleaseAcquirer":
        return cls(
            layout or StorageLayout.from_config(config),
            ReleaseIndexClient.from_config(config),
            extraction_root=config.images.extraction_dir,
            max_workers=config.max_concurrent_operations,
            **kwargs,
        )

    def extraction_dir(self, target: Version) -> Path:
        return self.extraction_root / f"devdisk_unzip-{target}"

    def _slot_lock(self, target: Version) -> threading.Lock:
        with self._slot_registry:
            return self._slot_locks.setdefault(target, threading.Lock())

    def ensure_image(self, target: Version, status: t.Optional[SessionStatus] = None) -> AcquireResult:
        """Find or download the image for ``target``.

        When ``status`` is given it moves ``PENDING -> IN_FLIGHT -> RESOLVED``;
        it is resolved exactly once whatever happens. Failures are logged and
        reported as ``ImageStatus.FAILED``.
        """
        if status is not None:
            status.image_state = AcquireState.PENDING
            status.image_result = None

        try:
            with self._slot_lock(target):
                result = self._acquire(target, status)
        except (ITweakError, OSError, zipfile.BadZipFile, ValueError) as e:
            logger.error(f"Failed to get the developer disk image for {target}: {e}")
            result = AcquireResult(ImageStatus.FAILED, target=target, reason=str(e))

        if status is not None:
            status.image_result = result
            status.image_state = AcquireState.RESOLVED
        return result

    def _acquire(self, target: Version, status: t.Optional[SessionStatus]) -> AcquireResult:
        if self.layout.has_image(target):
            logger.info(f"Developer disk image for {target} already present")
            return AcquireResult(
                ImageStatus.ALREADY_PRESENT,
                target=target,
                resolved=target,
                image_path=self.layout.get_image_path(target),
            )

        ensure_directory(self.layout.disk_images_dir)

        release = resolve_best_release(target, self.index.fetch_releases())
        if release is None:
            raise ResolutionError(f"No disk image release is compatible with iOS {target}")
        logger.info(f"Using disk image {release.tag_name} for iOS {target}")

        if status is not None:
            status.image_state = AcquireState.IN_FLIGHT

        handle = tempfile.NamedTemporaryFile(prefix="devdisk-", suffix=".zip", delete=False)
        handle.close()
        archive = Path(handle.name)
        try:
            self.index.download_archive(release.tag_name, archive, show_progress=self.show_progress)
            self._install(archive, release.tag_name, target)
        finally:
            try:
                archive.unlink()
            except FileNotFoundError:
                pass

        return AcquireResult(
            ImageStatus.DOWNLOADED,
            target=target,
            resolved=release.version,
            image_path=self.layout.get_image_path(target),
        )

    def _install(self, archive: Path, tag: str, target: Version) -> None:
        unzip_dir = self.extraction_dir(target)
        remove_path(unzip_dir)
        extract_zip(archive, unzip_dir)

        extracted = unzip_dir / tag
        if not extracted.is_dir():
            raise SyncError("Could not find the main version folder in the archive", details=tag)

        entry = self.layout.get_image_dir(target)
        if entry.exists():
            logger.debug(f"Replacing stale cache entry {entry}")
            remove_path(entry)
        shutil.move(str(extracted), str(entry))
        remove_path(unzip_dir)

        if not self.layout.get_image_path(target).is_file():
            raise SyncError(f"{self.layout.payload_name} missing from release {tag}")

    def acquire_for(self, session: Session) -> AcquireResult:
        """Acquire the image for the session's device version.

        Raises:
            OperationInProgressError: If an acquisition already runs for the device
        """
        with self.guard.hold(IMAGE_OPERATION, session.device_id):
            target = session.device.parsed_version
            if target is None:
                result = AcquireResult(
                    ImageStatus.FAILED,
                    reason=f"Unreadable device version {session.device.version!r}",
                )
                logger.error(result.reason)
                session.status.image_result = result
                session.status.image_state = AcquireState.RESOLVED
                return result
            return self.ensure_image(target, session.status)

    def acquire_for_async(self, session: Session) -> "Future[AcquireResult]":
        """Run :meth:`acquire_for` on a worker thread."""
        return self._executor.submit(self.acquire_for, session)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
