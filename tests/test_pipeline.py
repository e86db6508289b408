"""Tests for the tweak apply pipeline."""

import threading

import pytest

from itweak.errors import BackupError, OperationInProgressError, RestoreError, StagingError
from itweak.session import Session, Tweak
from itweak.tweaks.pipeline import PipelineStage, TweakPipeline
from itweak.workspace.manager import WorkspaceManager


@pytest.fixture
def session(layout, device):
    return WorkspaceManager(layout).open_session(device)


@pytest.fixture
def pipeline(gateway, layout, guard):
    return TweakPipeline(gateway, layout, guard=guard)


class TestPipelineSuccess:
    """Test a complete apply run."""

    def test_stages_enabled_tweaks_and_restores(self, pipeline, session, gateway, layout):
        """Test enabled tweaks are merged into staging and restored."""
        session.set_enabled(Tweak.STATUS_BAR, True)
        session.set_enabled(Tweak.FOOTNOTE, True)

        result = pipeline.run(session)

        assert result.ok
        assert result.stage is PipelineStage.DONE
        assert result.staged == [Tweak.FOOTNOTE, Tweak.STATUS_BAR]
        staging = layout.get_staging_dir(session.device_id)
        assert (staging / "HomeDomain/Library/SpringBoard/statusBarOverrides.plist").exists()
        assert (staging / "ConfigProfileDomain/Library/ConfigurationProfiles/SharedDeviceConfiguration.plist").exists()
        assert not (staging / "ConfigProfileDomain/Library/ConfigurationProfiles/CloudConfigurationDetails.plist").exists()
        assert gateway.call_names() == ["generate_backup", "restore_backup"]
        assert gateway.calls[0][1:] == (staging, layout.get_backup_dir(session.device_id))
        assert gateway.calls[1][1:] == (session.device_id, layout.get_backup_dir(session.device_id))

    def test_shared_domains_merged(self, pipeline, session, layout):
        """Test tweaks writing into the same domain end up side by side."""
        session.set_enabled(Tweak.FOOTNOTE, True)
        session.set_enabled(Tweak.SKIP_SETUP, True)

        assert pipeline.run(session).ok

        profiles = layout.get_staging_dir(session.device_id) / "ConfigProfileDomain/Library/ConfigurationProfiles"
        assert sorted(p.name for p in profiles.iterdir()) == [
            "CloudConfigurationDetails.plist",
            "SharedDeviceConfiguration.plist",
        ]

    def test_previous_run_cleared(self, pipeline, session, layout):
        """Test staging and backup leftovers are removed first."""
        layout.get_staging_dir(session.device_id).mkdir(parents=True)
        (layout.get_staging_dir(session.device_id) / "stale.plist").write_text("old")
        layout.get_backup_dir(session.device_id).mkdir(parents=True)
        (layout.get_backup_dir(session.device_id) / ".stale").write_text("old")
        session.set_enabled(Tweak.STATUS_BAR, True)

        assert pipeline.run(session).ok

        assert not (layout.get_staging_dir(session.device_id) / "stale.plist").exists()
        assert not (layout.get_backup_dir(session.device_id) / ".stale").exists()

    def test_progress_callback(self, pipeline, session):
        """Test every stage is reported in order."""
        session.set_enabled(Tweak.STATUS_BAR, True)
        seen = []

        pipeline.run(session, progress_callback=lambda message, current, total: seen.append((message, current, total)))

        assert [message for message, _, _ in seen] == [
            PipelineStage.CLEARING_STAGING.value,
            PipelineStage.STAGING_TWEAKS.value,
            PipelineStage.CLEARING_BACKUP.value,
            PipelineStage.GENERATING_BACKUP.value,
            PipelineStage.RESTORING.value,
            PipelineStage.DONE.value,
        ]
        assert seen[-1][1] == seen[-1][2]


class TestPipelineFailures:
    """Test the pipeline stops at the failing stage."""

    def test_missing_tweak_source(self, pipeline, session, gateway, layout):
        """Test a tweak without workspace files aborts staging and leaves the backup alone."""
        layout.get_backup_dir(session.device_id).mkdir(parents=True)
        (layout.get_backup_dir(session.device_id) / "previous").write_text("keep")
        session.set_enabled(Tweak.DYNAMIC_ISLAND, True)

        result = pipeline.run(session)

        assert not result.ok
        assert result.stage is PipelineStage.STAGING_TWEAKS
        assert isinstance(result.error, StagingError)
        assert (layout.get_backup_dir(session.device_id) / "previous").read_text() == "keep"
        assert gateway.calls == []

    def test_no_workspace(self, pipeline, layout, device, gateway):
        """Test a session without a workspace fails at staging."""
        result = pipeline.run(Session(device=device))

        assert result.stage is PipelineStage.STAGING_TWEAKS
        assert isinstance(result.error, StagingError)

    def test_backup_generation_failure(self, pipeline, session, gateway):
        """Test a failing backup generator stops before restore."""
        gateway.fail_backup = True
        session.set_enabled(Tweak.STATUS_BAR, True)

        result = pipeline.run(session)

        assert result.stage is PipelineStage.GENERATING_BACKUP
        assert isinstance(result.error, BackupError)
        assert "restore_backup" not in gateway.call_names()

    def test_restore_failure(self, pipeline, session, gateway, layout):
        """Test a failing restore is reported and staging is left behind."""
        gateway.fail_restore = True
        session.set_enabled(Tweak.STATUS_BAR, True)

        result = pipeline.run(session)

        assert result.stage is PipelineStage.RESTORING
        assert isinstance(result.error, RestoreError)
        assert any(layout.get_staging_dir(session.device_id).iterdir())

    def test_can_rerun_after_failure(self, pipeline, session, gateway):
        """Test a fresh run from the start succeeds after a failure."""
        gateway.fail_restore = True
        session.set_enabled(Tweak.STATUS_BAR, True)
        assert not pipeline.run(session).ok

        gateway.fail_restore = False
        assert pipeline.run(session).ok


class TestPipelineConcurrency:
    """Test one apply per device at a time."""

    def test_concurrent_apply_rejected(self, pipeline, session, gateway):
        """Test a second apply for the same device is rejected while one runs."""
        session.set_enabled(Tweak.STATUS_BAR, True)
        inside = threading.Event()
        release = threading.Event()
        errors = []

        def block(source, backup):
            inside.set()
            release.wait(timeout=5)

        gateway.on_generate_backup = block
        worker = threading.Thread(target=lambda: pipeline.run(session))
        worker.start()
        try:
            assert inside.wait(timeout=5)
            try:
                pipeline.run(session)
            except OperationInProgressError as e:
                errors.append(e)
        finally:
            release.set()
            worker.join(timeout=5)

        assert len(errors) == 1
        assert errors[0].device_id == session.device_id

    def test_other_device_not_blocked(self, pipeline, guard, layout):
        """Test holding one device's apply leaves other devices free."""
        from itweak.idevice.gateway import Device

        other = WorkspaceManager(layout).open_session(Device("udid-2", "Other", "17.0"))
        other.set_enabled(Tweak.STATUS_BAR, True)

        with guard.hold("apply", "udid-1"):
            assert guard.is_busy("apply", "udid-1")
            assert pipeline.run(other).ok
            assert not guard.is_busy("apply", "udid-2")

    def test_concurrent_applies_on_two_devices_stay_separate(self, pipeline, session, gateway, layout):
        """Test two devices applying at once each restore only their own tweaks."""
        from itweak.idevice.gateway import Device

        other = WorkspaceManager(layout).open_session(Device("udid-2", "Other", "17.0"))
        session.set_enabled(Tweak.STATUS_BAR, True)
        other.set_enabled(Tweak.FOOTNOTE, True)
        own_staging = layout.get_staging_dir(session.device_id)
        inside = threading.Event()
        release = threading.Event()
        seen_at_backup = {}

        def block(source, backup):
            if source == own_staging:
                inside.set()
                release.wait(timeout=5)
            seen_at_backup[source] = sorted(p.name for p in source.iterdir())

        gateway.on_generate_backup = block
        results = []
        worker = threading.Thread(target=lambda: results.append(pipeline.run(session)))
        worker.start()
        try:
            assert inside.wait(timeout=5)
            assert pipeline.run(other).ok
        finally:
            release.set()
            worker.join(timeout=5)

        assert results and results[0].ok
        assert seen_at_backup[own_staging] == ["HomeDomain"]
        assert seen_at_backup[layout.get_staging_dir(other.device_id)] == ["ConfigProfileDomain"]
        restores = [call[1:] for call in gateway.calls if call[0] == "restore_backup"]
        assert sorted(restores) == sorted([
            (session.device_id, layout.get_backup_dir(session.device_id)),
            (other.device_id, layout.get_backup_dir(other.device_id)),
        ])
