"""Tests for workspace management and sessions."""

import os

import pytest

from itweak.errors import ToolNotFoundError
from itweak.idevice.gateway import Device
from itweak.session import AcquireState, MountState, Session, Tweak
from itweak.storage import StorageLayout
from itweak.workspace.manager import WorkspaceManager, build_tree

STATUS_BAR_FILE = "StatusBar/HomeDomain/Library/SpringBoard/statusBarOverrides.plist"


class TestEnsureWorkspace:
    """Test creating and seeding device workspaces."""

    def test_creates_and_seeds(self, layout):
        """Test a first access copies the whole template."""
        manager = WorkspaceManager(layout)

        workspace = manager.ensure_workspace("udid-1")

        assert workspace == layout.workspace_root / "udid-1"
        assert (workspace / STATUS_BAR_FILE).read_text() == "<plist>StatusBar</plist>"
        assert (workspace / "Footnote").is_dir()

    def test_user_edits_survive_reseed(self, layout):
        """Test re-seeding keeps files edited after seeding."""
        manager = WorkspaceManager(layout)
        workspace = manager.ensure_workspace("udid-1")

        edited = workspace / STATUS_BAR_FILE
        edited.write_text("<plist>edited</plist>")
        template_mtime = (layout.template_dir / STATUS_BAR_FILE).stat().st_mtime_ns
        os.utime(edited, ns=(template_mtime + 10**9, template_mtime + 10**9))

        manager.ensure_workspace("udid-1")

        assert edited.read_text() == "<plist>edited</plist>"

    def test_newer_template_updates_workspace(self, layout):
        """Test an updated template file reaches an existing workspace."""
        manager = WorkspaceManager(layout)
        workspace = manager.ensure_workspace("udid-1")

        template_file = layout.template_dir / STATUS_BAR_FILE
        template_file.write_text("<plist>v2</plist>")
        later = (workspace / STATUS_BAR_FILE).stat().st_mtime_ns + 10**9
        os.utime(template_file, ns=(later, later))

        manager.ensure_workspace("udid-1")

        assert (workspace / STATUS_BAR_FILE).read_text() == "<plist>v2</plist>"

    def test_workspaces_are_per_device(self, layout):
        """Test two devices get separate workspaces."""
        manager = WorkspaceManager(layout)
        first = manager.ensure_workspace("udid-1")
        second = manager.ensure_workspace("udid-2")

        (first / STATUS_BAR_FILE).write_text("<plist>only first</plist>")

        assert first != second
        assert (second / STATUS_BAR_FILE).read_text() == "<plist>StatusBar</plist>"

    def test_missing_template(self, tmp_path):
        """Test a missing template tree is reported."""
        layout = StorageLayout(tmp_path / "docs", template_dir=tmp_path / "absent")
        with pytest.raises(ToolNotFoundError):
            WorkspaceManager(layout).ensure_workspace("udid-1")


class TestOpenSession:
    """Test selecting a device."""

    def test_supported_device(self, layout, device):
        """Test a supported device gets a seeded workspace."""
        session = WorkspaceManager(layout).open_session(device)

        assert session.available
        assert session.current_workspace == layout.get_workspace_dir(device.identifier)
        assert (session.current_workspace / STATUS_BAR_FILE).exists()

    def test_old_device_unavailable(self, layout):
        """Test devices below the minimum major get no workspace."""
        old = Device(identifier="old-udid", name="Old iPhone", version="14.8")

        session = WorkspaceManager(layout, min_supported_major=15).open_session(old)

        assert not session.available
        assert session.current_workspace is None
        assert not layout.workspace_root.exists()

    def test_switching_device_keeps_disk_state(self, layout, device):
        """Test a new session starts clean while the old workspace stays."""
        manager = WorkspaceManager(layout)
        first = manager.open_session(device)
        first.set_enabled(Tweak.STATUS_BAR, True)

        other = Device(identifier="udid-2", name="Other", version="17.0")
        second = manager.open_session(other)

        assert second.enabled_tweaks == set()
        assert first.current_workspace.exists()


class TestSession:
    """Test in-memory session state."""

    def test_enable_disable(self, device):
        """Test toggling tweaks."""
        session = Session(device=device)

        session.set_enabled(Tweak.FOOTNOTE, True)
        session.set_enabled(Tweak.STATUS_BAR, True)
        session.set_enabled(Tweak.FOOTNOTE, False)

        assert session.is_enabled(Tweak.STATUS_BAR)
        assert not session.is_enabled(Tweak.FOOTNOTE)

    def test_disable_unknown_is_noop(self, device):
        """Test disabling a tweak that was never enabled."""
        session = Session(device=device)
        session.set_enabled(Tweak.THEMES, False)
        assert session.enabled_tweaks == set()

    def test_reset(self, device):
        """Test reset clears tweaks and status flags."""
        session = Session(device=device)
        session.set_enabled(Tweak.SKIP_SETUP, True)
        session.status.image_state = AcquireState.RESOLVED
        session.status.mount_state = MountState.MOUNTED

        session.reset()

        assert session.enabled_tweaks == set()
        assert not session.status.loaded
        assert not session.status.mounted

    def test_tweak_lookup(self):
        """Test tweaks resolve by folder name or member name."""
        assert Tweak.from_name("StatusBar") is Tweak.STATUS_BAR
        assert Tweak.from_name("status-bar") is Tweak.STATUS_BAR
        assert Tweak.from_name("AppliedTheme") is Tweak.THEMES
        with pytest.raises(ValueError):
            Tweak.from_name("Nope")


class TestBuildTree:
    """Test workspace tree rendering."""

    def test_hidden_entries_left_out(self, tmp_path):
        """Test the tree lists visible entries only."""
        (tmp_path / "StatusBar").mkdir()
        (tmp_path / "StatusBar" / "a.plist").write_text("a")
        (tmp_path / ".hidden").write_text("x")

        tree = build_tree(tmp_path)

        labels = [str(child.label) for child in tree.children]
        assert labels == ["[cyan]StatusBar/[/cyan]"]
        assert [str(c.label) for c in tree.children[0].children] == ["a.plist"]
