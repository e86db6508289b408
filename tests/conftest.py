"""Shared fixtures."""

import typing as t
from pathlib import Path

import pytest

from itweak.errors import ExternalToolError
from itweak.idevice.gateway import Device, DeviceToolGateway, MountOutcome
from itweak.session import OperationGuard
from itweak.storage import StorageLayout


class FakeGateway(DeviceToolGateway):
    """Records calls and returns canned results."""

    def __init__(self, devices: t.Optional[t.List[Device]] = None) -> None:
        self.devices = devices or []
        self.calls: t.List[t.Tuple] = []
        self.mount_outcome = MountOutcome.MOUNTED
        self.fail_backup = False
        self.fail_restore = False
        self.location_ok = True
        self.on_generate_backup: t.Optional[t.Callable[[Path, Path], None]] = None

    def list_devices(self):
        self.calls.append(("list_devices",))
        return list(self.devices)

    def device_name(self, device_id):
        return next(d.name for d in self.devices if d.identifier == device_id)

    def device_version(self, device_id):
        return next(d.version for d in self.devices if d.identifier == device_id)

    def mount_image(self, device_id, image_path):
        self.calls.append(("mount_image", device_id, Path(image_path)))
        return self.mount_outcome

    def generate_backup(self, source_dir, backup_dir):
        self.calls.append(("generate_backup", Path(source_dir), Path(backup_dir)))
        if self.on_generate_backup:
            self.on_generate_backup(Path(source_dir), Path(backup_dir))
        if self.fail_backup:
            raise ExternalToolError("backup generator exited with status 1")

    def restore_backup(self, device_id, backup_dir):
        self.calls.append(("restore_backup", device_id, Path(backup_dir)))
        if self.fail_restore:
            raise ExternalToolError("idevicebackup2 exited with status 1")

    def needs_mount(self, device_id):
        return False

    def set_location(self, device_id, latitude, longitude):
        self.calls.append(("set_location", device_id, latitude, longitude))
        return self.location_ok

    def reset_location(self, device_id):
        self.calls.append(("reset_location", device_id))
        return self.location_ok

    def home_screen_apps(self, device_id):
        return {}

    def home_screen_pages(self, device_id):
        return 1

    def call_names(self) -> t.List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def device() -> Device:
    return Device(identifier="00008110-000A1B2C3D4E", name="Test iPhone", version="16.2")


@pytest.fixture
def gateway(device) -> FakeGateway:
    return FakeGateway([device])


@pytest.fixture
def template_dir(tmp_path) -> Path:
    template = tmp_path / "template"
    for tweak, relative in [
        ("StatusBar", "HomeDomain/Library/SpringBoard/statusBarOverrides.plist"),
        ("Footnote", "ConfigProfileDomain/Library/ConfigurationProfiles/SharedDeviceConfiguration.plist"),
        ("SkipSetup", "ConfigProfileDomain/Library/ConfigurationProfiles/CloudConfigurationDetails.plist"),
    ]:
        path = template / tweak / relative
        path.parent.mkdir(parents=True)
        path.write_text(f"<plist>{tweak}</plist>")
    return template


@pytest.fixture
def layout(tmp_path, template_dir) -> StorageLayout:
    return StorageLayout(tmp_path / "documents", template_dir=template_dir)


@pytest.fixture
def guard() -> OperationGuard:
    return OperationGuard()
