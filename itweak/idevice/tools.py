"""libimobiledevice-backed implementation of the device tool gateway."""

import os
import shutil
import subprocess
import typing as t
from pathlib import Path

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import ExternalToolError, ToolNotFoundError
from ..util.logging import get_logger
from .gateway import Device, DeviceToolGateway, MountOutcome

logger = get_logger(__name__)

IDEVICE_ID = "idevice_id"
IDEVICE_NAME = "idevicename"
IDEVICE_INFO = "ideviceinfo"
IDEVICE_IMAGE_MOUNTER = "ideviceimagemounter"
IDEVICE_BACKUP = "idevicebackup2"
LOCSIM_UTILS = "locsimUtils"
HOME_SCREEN_APPS = "homeScreenApps"

IMAGE_MOUNT_FAILED = "Error: ImageMountFailed"
NOT_MOUNTED_MARKER = "Make sure a developer disk image is mounted!"
# locsimUtils insists on an argument after -r
RESET_TOKEN = "bbhhjjkk"


def _reports_failure(output: str) -> bool:
    return "ERROR" in output or "Usage" in output


class LibimobiledeviceGateway(DeviceToolGateway):
    """Runs the libimobiledevice command line tools as subprocesses."""

    def __init__(
        self,
        tools_dir: t.Optional[Path] = None,
        library_dir: t.Optional[Path] = None,
        working_dir: t.Optional[Path] = None,
        backup_generator: str = "itweak-backupgen",
        timeout: int = 60,
        restore_timeout: int = 900,
    ) -> None:
        self.tools_dir = Path(tools_dir) if tools_dir else None
        self.library_dir = Path(library_dir) if library_dir else None
        self.working_dir = Path(working_dir) if working_dir else None
        self.backup_generator = backup_generator
        self.timeout = timeout
        self.restore_timeout = restore_timeout

    @classmethod
    def from_config(cls, config) -> "LibimobiledeviceGateway":
        return cls(
            tools_dir=config.tools.tools_dir,
            library_dir=config.tools.library_dir,
            working_dir=config.documents_root,
            backup_generator=config.tools.backup_generator,
            timeout=config.tools.timeout,
            restore_timeout=config.tools.restore_timeout,
        )

    def resolve_tool(self, name: str) -> str:
        """Locate an executable in ``tools_dir`` first, then on PATH."""
        if self.tools_dir is not None:
            candidate = self.tools_dir / name
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
        found = shutil.which(name)
        if found is None:
            raise ToolNotFoundError(f"Error locating {name}")
        return found

    def _environment(self) -> t.Optional[t.Dict[str, str]]:
        if self.library_dir is None:
            return None
        env = dict(os.environ)
        env["DYLD_LIBRARY_PATH"] = str(self.library_dir)
        env["LD_LIBRARY_PATH"] = str(self.library_dir)
        return env

    def _run_tool(
        self,
        name: str,
        args: t.List[str],
        timeout: t.Optional[int] = None,
        check: bool = False,
    ) -> str:
        """Run a tool and return its combined stdout/stderr."""
        cmd = [self.resolve_tool(name)] + args
        timeout = timeout or self.timeout

        try:
            logger.debug(f"Running device tool: {' '.join(cmd)}")
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
                cwd=str(self.working_dir) if self.working_dir else None,
                env=self._environment(),
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(f"{name} timed out after {timeout}s") from e
        except OSError as e:
            raise ExternalToolError(f"Could not run {name}", details=str(e)) from e

        output = result.stdout or ""
        if check and result.returncode != 0:
            raise ExternalToolError(
                f"{name} exited with status {result.returncode}",
                details=output.strip(),
                output=output,
            )
        return output

    @retry(
        retry=retry_if_exception_type(ExternalToolError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _query(self, name: str, args: t.List[str]) -> str:
        """Run a read-only query with retry logic."""
        return self._run_tool(name, args, check=True)

    def list_devices(self) -> t.List[Device]:
        output = self._query(IDEVICE_ID, ["-l"])
        if "ERROR" in output:
            logger.warning(f"{IDEVICE_ID} reported an error: {output.strip()}")
            return []

        devices = []
        for line in output.splitlines():
            udid = line.strip()
            if not udid:
                continue
            devices.append(Device(
                identifier=udid,
                name=self.device_name(udid),
                version=self.device_version(udid),
            ))
        return devices

    def device_name(self, device_id: str) -> str:
        return self._query(IDEVICE_NAME, ["-u", device_id]).replace("\n", "")

    def device_version(self, device_id: str) -> str:
        return self._query(IDEVICE_INFO, ["-u", device_id, "-k", "ProductVersion"]).replace("\n", "")

    def mount_image(self, device_id: str, image_path: Path) -> MountOutcome:
        output = self._run_tool(IDEVICE_IMAGE_MOUNTER, ["-u", device_id, str(image_path)])
        if output.strip() == IMAGE_MOUNT_FAILED:
            return MountOutcome.IMAGE_MOUNT_FAILED
        return MountOutcome.MOUNTED

    def generate_backup(self, source_dir: Path, backup_dir: Path) -> None:
        output = self._run_tool(
            self.backup_generator,
            [str(source_dir), str(backup_dir)],
            timeout=self.restore_timeout,
            check=True,
        )
        if "ERROR" in output:
            raise ExternalToolError("Backup generation failed", details=output.strip(), output=output)
        logger.debug(output)

    def restore_backup(self, device_id: str, backup_dir: Path) -> None:
        backup_dir = Path(backup_dir)
        # idevicebackup2 reads <directory>/<source>, so the backup folder name
        # is passed as the source and its parent as the directory.
        output = self._run_tool(
            IDEVICE_BACKUP,
            ["-u", device_id, "-s", backup_dir.name, "restore", "--system", "--skip-apps", str(backup_dir.parent)],
            timeout=self.restore_timeout,
            check=True,
        )
        logger.info(output.strip())

    def needs_mount(self, device_id: str) -> bool:
        try:
            output = self._run_tool(LOCSIM_UTILS, ["-u", device_id, "-m"])
        except ExternalToolError as e:
            logger.error(f"Error executing {LOCSIM_UTILS}: {e}")
            return True
        return NOT_MOUNTED_MARKER in output

    def set_location(self, device_id: str, latitude: str, longitude: str) -> bool:
        output = self._run_tool(LOCSIM_UTILS, ["-u", device_id, "-l", latitude, "-s", longitude])
        return not _reports_failure(output)

    def reset_location(self, device_id: str) -> bool:
        output = self._run_tool(LOCSIM_UTILS, ["-u", device_id, "-r", RESET_TOKEN])
        return not _reports_failure(output)

    def home_screen_apps(self, device_id: str) -> t.Dict[str, str]:
        output = self._query(HOME_SCREEN_APPS, ["-u", device_id])
        apps = {}
        for line in output.splitlines():
            bundle_id, sep, name = line.partition(",")
            if not sep:
                logger.debug(f"Skipping malformed app line: {line!r}")
                continue
            apps[bundle_id] = name
        return apps

    def home_screen_pages(self, device_id: str) -> int:
        output = self._query(HOME_SCREEN_APPS, ["-u", device_id, "-n"]).replace("\n", "")
        try:
            return int(output)
        except ValueError:
            return 1
