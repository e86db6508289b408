"""
Exception hierarchy for iTweakSuite.

Lower layers raise these; component boundaries (the image acquirer, the
mounter and the tweak pipeline) catch them, log them and report a status
object to the caller instead of re-raising.
"""

from typing import Optional


class ITweakError(Exception):
    """Base exception for all iTweakSuite errors."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ToolNotFoundError(ITweakError):
    """A required executable or bundled resource could not be located."""


class SyncError(ITweakError):
    """A filesystem create, copy or remove operation failed."""


class NetworkError(ITweakError):
    """Fetching the release index or downloading an archive failed."""


class DecodeError(ITweakError):
    """The release index could not be decoded."""


class VersionParseError(DecodeError, ValueError):
    """A version string has no numeric component."""


class ResolutionError(ITweakError):
    """No compatible disk image release exists for the target version."""


class ExternalToolError(ITweakError):
    """An external device tool exited abnormally or reported an error."""

    def __init__(self, message: str, details: Optional[str] = None, output: str = "") -> None:
        super().__init__(message, details)
        self.output = output


class OperationInProgressError(ITweakError):
    """Another operation of the same kind is already running for the device."""

    def __init__(self, operation: str, device_id: str) -> None:
        super().__init__(
            f"A '{operation}' operation is already running",
            details=f"device {device_id}",
        )
        self.operation = operation
        self.device_id = device_id


class PipelineStageError(ITweakError):
    """A tweak pipeline stage failed. ``stage`` names the failing stage."""

    def __init__(self, stage, message: str, details: Optional[str] = None) -> None:
        super().__init__(message, details)
        self.stage = stage


class StagingError(PipelineStageError):
    """Preparing the staging directory or merging a tweak into it failed."""


class BackupError(PipelineStageError):
    """Preparing the backup directory or generating the backup failed."""


class RestoreError(PipelineStageError):
    """Restoring the backup to the device failed."""
