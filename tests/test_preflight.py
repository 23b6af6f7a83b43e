"""Tests for pre-migration readiness checks."""

import pytest


@pytest.fixture
def ctx(make_context, host_files, no_local_ports, runner):
    runner.responses[("timedatectl", "status")] = (0, "System clock synchronized: yes\n")
    runner.responses[("systemctl", "is-active", "--quiet")] = (3, "")
    return make_context()


class TestPreflightChecks:
    """Test individual readiness checks."""

    def test_all_checks_pass_on_healthy_host(self, ctx):
        """Test a healthy host produces no warnings."""
        from domain_migrator.migration.preflight import WARN, run_preflight_checks

        ctx.settings.min_free_disk_mb = 0
        results = run_preflight_checks(ctx)
        assert [r.name for r in results if r.status == WARN] == []
        assert any(r.name == "Distribution" and "12.5" in r.message for r in results)

    def test_missing_debian_version(self, ctx):
        """Test a non-Debian host warns."""
        from domain_migrator.migration.preflight import WARN, check_distribution

        ctx.settings.debian_version_file.unlink()
        assert check_distribution(ctx).status == WARN

    def test_connectivity_failure_warns(self, ctx, runner):
        """Test failed ping is a warning, not an error."""
        from domain_migrator.migration.preflight import WARN, check_connectivity

        runner.responses[("ping",)] = (1, "")
        result = check_connectivity(ctx)
        assert result.status == WARN
        assert "FAILED" in result.message

    def test_ports_in_use_are_informational(self, ctx, monkeypatch):
        """Test local listeners on AD ports are reported as info."""
        from domain_migrator.migration.preflight import INFO, check_ad_ports

        monkeypatch.setattr("domain_migrator.migration.preflight.port_in_use", lambda port: port == 445)
        results = check_ad_ports(ctx)
        assert [(r.name, r.status) for r in results] == [("Port 445", INFO)]

    def test_low_disk_space(self, ctx):
        """Test the free space threshold."""
        from domain_migrator.migration.preflight import WARN, check_disk_space

        ctx.settings.min_free_disk_mb = 10 ** 12
        assert check_disk_space(ctx).status == WARN

    def test_virtual_machine_detected(self, ctx):
        """Test hypervisor product names are reported."""
        from domain_migrator.migration.preflight import INFO, check_virtualization

        ctx.settings.dmi_product_file.write_text("VMware Virtual Platform\n")
        result = check_virtualization(ctx)
        assert result.status == INFO
        assert "Virtual machine" in result.message


class TestPreflightFixes:
    """Test checks that can change the host with operator consent."""

    def test_active_sessions_logged_out_when_confirmed(self, ctx, runner, ui):
        """Test users are warned and logged out, sparing the safety account."""
        runner.responses[("who",)] = (0, "alice pts/0 2024-01-01\nbackup pts/1 2024-01-01\nalice pts/2 2024-01-01\n")
        ui.answers["Users will be logged out"] = True
        from domain_migrator.migration.preflight import check_active_sessions

        result = check_active_sessions(ctx)
        assert result.fixed
        assert runner.ran("wall")
        assert runner.ran("pkill", "-u", "alice")
        assert not runner.ran("pkill", "-u", "backup")

    def test_active_sessions_declined(self, ctx, runner, ui):
        """Test declining keeps users logged in."""
        from domain_migrator.migration.preflight import WARN, check_active_sessions

        runner.responses[("who",)] = (0, "alice pts/0 2024-01-01\n")
        ui.answers["Users will be logged out"] = False
        assert check_active_sessions(ctx).status == WARN
        assert not runner.ran("pkill")

    def test_conflicting_service_stopped(self, ctx, runner, ui):
        """Test a running winbind is stopped only after confirmation."""
        from domain_migrator.migration.preflight import check_conflicting_services

        runner.responses[("systemctl", "is-active", "--quiet", "winbind")] = (0, "")
        ui.answers["stop winbind"] = True
        results = check_conflicting_services(ctx)

        assert [r.name for r in results] == ["Service winbind"]
        assert results[0].fixed
        assert runner.ran("systemctl", "stop", "winbind")

    def test_time_sync_enabled_on_confirmation(self, ctx, runner, ui):
        """Test NTP is enabled and rechecked."""
        from domain_migrator.migration.preflight import check_time_sync

        runner.responses[("timedatectl", "status")] = [
            (0, "System clock synchronized: no\n"),
            (0, "System clock synchronized: yes\n"),
        ]
        ui.answers["Enable NTP"] = True
        result = check_time_sync(ctx)

        assert result.fixed
        assert runner.ran("timedatectl", "set-ntp", "true")

    def test_time_sync_declined(self, ctx, runner, ui):
        """Test declining the fix leaves the clock alone."""
        from domain_migrator.migration.preflight import WARN, check_time_sync

        runner.responses[("timedatectl", "status")] = (0, "System clock synchronized: no\n")
        ui.answers["Enable NTP"] = False
        assert check_time_sync(ctx).status == WARN
        assert not runner.ran("timedatectl", "set-ntp")

    def test_time_sync_without_timedatectl(self, ctx, runner):
        """Test missing timedatectl is a warning."""
        from domain_migrator.migration.preflight import WARN, check_time_sync

        runner.missing.add("timedatectl")
        assert check_time_sync(ctx).status == WARN

    def test_dry_run_records_fixes(self, make_context, host_files, no_local_ports, runner, ui):
        """Test dry-run fixes are recorded, never executed."""
        from domain_migrator.migration.preflight import check_time_sync
        from domain_migrator.migration.state import MigrationMode

        runner.responses[("timedatectl", "status")] = (0, "System clock synchronized: no\n")
        ui.answers["Enable NTP"] = True
        ctx = make_context(MigrationMode.DRY_RUN)

        check_time_sync(ctx)
        assert not runner.ran("timedatectl", "set-ntp")
        assert any("timedatectl set-ntp true" in a.description for a in ctx.runner.actions)
