"""Tests for reverting a migration."""

import pytest


@pytest.fixture
def controller(runner, ui, settings):
    from domain_migrator.migration.backups import BackupManager
    from domain_migrator.migration.revert import RevertController

    backups = BackupManager(runner, settings.rollback_dir, settings.restore_root)
    return RevertController(settings, runner, ui, backups)


class TestFileRevert:
    """Test restoring individual configuration files."""

    def test_no_backups(self, controller):
        """Test revert refuses when there is nothing to restore."""
        from domain_migrator.migration.exceptions import NoBackupsFoundError

        with pytest.raises(NoBackupsFoundError) as exc_info:
            controller.revert()
        assert any("hosts.backup" in path for path in exc_info.value.searched)

    def test_only_sssd_backup(self, controller, settings, ui, runner):
        """Test a lone SSSD backup is restored and the others reported missing."""
        settings.sssd_conf.write_text("[domain/corp.local]\n")
        settings.sssd_conf.with_name("sssd.conf.backup.20240101_000000").write_text("[domain/old.local]\n")
        settings.state_file.parent.mkdir(parents=True)
        settings.state_file.write_text("STEP=21|MODE=live|DOMAIN=corp.local|HOSTNAME=srv01\n")
        ui.answers["proceed with reverting"] = True

        outcome = controller.revert()

        assert outcome.restored == ["SSSD"]
        assert outcome.not_found == ["Hosts", "Kerberos"]
        assert settings.sssd_conf.read_text() == "[domain/old.local]\n"
        assert runner.ran("sssctl", "cache-remove")
        assert runner.ran("systemctl", "restart", "sssd")
        assert not settings.state_file.exists()
        assert not outcome.reboot_requested

    def test_latest_backup_restored(self, controller, settings, ui, host_files):
        """Test the newest backup of each file is used."""
        settings.hosts_file.with_name("hosts.backup.20240101_000000").write_text("oldest\n")
        settings.hosts_file.with_name("hosts.backup.20240301_000000").write_text("newest\n")
        ui.answers["proceed with reverting"] = True

        controller.revert()
        assert settings.hosts_file.read_text() == "newest\n"

    def test_cancelled(self, controller, settings, ui, runner, host_files):
        """Test declining leaves every file alone."""
        settings.hosts_file.with_name("hosts.backup.20240101_000000").write_text("backup\n")
        ui.answers["proceed with reverting"] = False

        outcome = controller.revert()
        assert outcome.cancelled
        assert settings.hosts_file.read_text() == host_files["hosts"]
        assert not runner.ran("systemctl")

    def test_reboot(self, controller, settings, ui, runner):
        """Test the reboot offer after a revert."""
        settings.sssd_conf.with_name("sssd.conf.backup.20240101_000000").write_text("x\n")
        ui.answers.update({"proceed with reverting": True, "reboot now": True})

        assert controller.revert().reboot_requested
        assert runner.commands()[-1] == ["reboot"]


class TestSnapshotRevert:
    """Test restoring from a rollback point."""

    @pytest.fixture
    def snapshot(self, settings, host_files, runner):
        from domain_migrator.migration.backups import BackupManager

        manager = BackupManager(runner, settings.rollback_dir, settings.restore_root)
        return manager.create_snapshot(settings.snapshot_paths, "technician", "corp.local", "srv01")

    def test_snapshot_restored(self, controller, snapshot, settings, ui, host_files):
        """Test two confirmations extract the rollback point."""
        ui.answers.update({"rollback point for complete restoration": True, "Are you sure": True})

        outcome = controller.revert()
        assert outcome.snapshot_restored.archive_path == snapshot.archive_path
        restored = settings.restore_root / str(settings.hosts_file).lstrip("/")
        assert restored.read_text() == host_files["hosts"]

    def test_snapshot_declined_falls_back_to_files(self, controller, snapshot, settings, ui):
        """Test declining the rollback point offers file-based revert."""
        settings.krb5_conf.with_name("krb5.conf.backup.20240101_000000").write_text("[libdefaults]\n")
        ui.answers.update({
            "rollback point for complete restoration": False,
            "proceed with reverting": True,
        })

        outcome = controller.revert()
        assert outcome.snapshot_restored is None
        assert outcome.restored == ["Kerberos"]
        assert not (settings.restore_root / str(settings.hosts_file).lstrip("/")).exists()


class TestPostRevert:
    """Test clean-up after configuration is restored."""

    def test_profile_links_restored(self, controller, settings, ui):
        """Test migrated home directories move back over their links."""
        new_home = settings.home_root / "alice@corp.local"
        old_home = settings.home_root / "alice@old.local"
        new_home.mkdir()
        (new_home / ".profile").write_text("export X=1\n")
        old_home.symlink_to(new_home)
        settings.sssd_conf.with_name("sssd.conf.backup.20240101_000000").write_text("x\n")
        ui.answers["proceed with reverting"] = True

        outcome = controller.revert()
        assert outcome.profiles_restored == [(new_home, old_home)]
        assert old_home.is_dir() and not old_home.is_symlink()
        assert (old_home / ".profile").exists()
        assert not new_home.exists()

    def test_migration_logs_removed(self, controller, settings, ui):
        """Test profile migration logs are removed on request."""
        settings.log_dir.mkdir()
        log = settings.log_dir / "user-migration-20240102_030405.log"
        log.write_text("moved\n")
        settings.sssd_conf.with_name("sssd.conf.backup.20240101_000000").write_text("x\n")
        ui.answers.update({"proceed with reverting": True, "remove user migration logs": True})

        controller.revert()
        assert not log.exists()
