"""Apply pipeline: stage enabled tweaks, build a backup, restore it."""

import typing as t
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..errors import (
    BackupError,
    ITweakError,
    PipelineStageError,
    RestoreError,
    StagingError,
)
from ..idevice.gateway import DeviceToolGateway
from ..session import OperationGuard, Session, Tweak, operation_guard
from ..storage import StorageLayout
from ..util.logging import get_logger
from ..util.paths import reset_directory
from ..workspace.sync import merge_directory

logger = get_logger(__name__)

APPLY_OPERATION = "apply"


class PipelineStage(Enum):
    """Stages of an apply run, in order."""

    IDLE = "Idle"
    CLEARING_STAGING = "Clearing staging area"
    STAGING_TWEAKS = "Staging tweaks"
    CLEARING_BACKUP = "Clearing backup area"
    GENERATING_BACKUP = "Generating backup"
    RESTORING = "Restoring to device"
    DONE = "Done"


_ORDER = list(PipelineStage)


@dataclass
class PipelineResult:
    """Where an apply run ended and why."""

    ok: bool
    stage: PipelineStage
    error: t.Optional[PipelineStageError] = None
    staged: t.List[Tweak] = field(default_factory=list)


class TweakPipeline:
    """Runs one apply operation per device at a time.

    Stages never go back and are never retried. A failure stops the run
    where it is and leaves the staging and backup areas as they were at
    that point.
    """

    def __init__(
        self,
        gateway: DeviceToolGateway,
        layout: StorageLayout,
        guard: OperationGuard = operation_guard,
    ) -> None:
        self.gateway = gateway
        self.layout = layout
        self.guard = guard

    def run(
        self,
        session: Session,
        progress_callback: t.Optional[t.Callable[[str, int, int], None]] = None,
    ) -> PipelineResult:
        """Apply the session's enabled tweaks to its device.

        Args:
            session: Current device session
            progress_callback: Optional callback for progress updates (message, current, total)

        Returns:
            PipelineResult; failures are reported here, not raised

        Raises:
            OperationInProgressError: If an apply already runs for the device
        """
        with self.guard.hold(APPLY_OPERATION, session.device_id):
            staged: t.List[Tweak] = []
            staging_dir = self.layout.get_staging_dir(session.device_id)
            backup_dir = self.layout.get_backup_dir(session.device_id)
            stage = PipelineStage.IDLE

            def enter(next_stage: PipelineStage) -> PipelineStage:
                logger.debug(f"Apply {session.device_id}: {next_stage.value}")
                if progress_callback:
                    progress_callback(next_stage.value, _ORDER.index(next_stage), len(_ORDER) - 1)
                return next_stage

            try:
                stage = enter(PipelineStage.CLEARING_STAGING)
                self._reset(staging_dir, StagingError, stage)

                stage = enter(PipelineStage.STAGING_TWEAKS)
                staged = self._stage_tweaks(session, staging_dir, stage)

                stage = enter(PipelineStage.CLEARING_BACKUP)
                self._reset(backup_dir, BackupError, stage)

                stage = enter(PipelineStage.GENERATING_BACKUP)
                try:
                    self.gateway.generate_backup(staging_dir, backup_dir)
                except ITweakError as e:
                    raise BackupError(stage, "Error generating backup", details=str(e)) from e

                stage = enter(PipelineStage.RESTORING)
                try:
                    self.gateway.restore_backup(session.device_id, backup_dir)
                except ITweakError as e:
                    raise RestoreError(stage, "Error restoring to device", details=str(e)) from e

            except PipelineStageError as e:
                logger.error(f"{e.stage.value} failed: {e}")
                return PipelineResult(False, e.stage, e, staged)

            enter(PipelineStage.DONE)
            logger.info(f"Applied {len(staged)} tweak(s) to {session.device_id}")
            return PipelineResult(True, PipelineStage.DONE, None, staged)

    def _reset(self, directory: Path, error_type, stage: PipelineStage) -> None:
        try:
            reset_directory(directory)
        except OSError as e:
            raise error_type(stage, f"Error clearing {directory.name} directory", details=str(e)) from e

    def _stage_tweaks(self, session: Session, staging_dir: Path, stage: PipelineStage) -> t.List[Tweak]:
        if session.workspace is None:
            raise StagingError(stage, "Error getting workspace for the current device")

        tweaks = sorted(session.enabled_tweaks, key=lambda tweak: tweak.value)
        if not tweaks:
            logger.warning("No tweaks enabled; the restore will only carry an empty backup")

        for tweak in tweaks:
            source = session.workspace / tweak.value
            if not source.is_dir():
                raise StagingError(stage, f"Files for tweak {tweak.value} are missing", details=str(source))
            try:
                merge_directory(source, staging_dir)
            except ITweakError as e:
                raise StagingError(stage, f"Error staging tweak {tweak.value}", details=str(e)) from e
            logger.debug(f"Staged {tweak.value}")
        return tweaks
