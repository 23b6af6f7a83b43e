"""Shared fixtures for domain migrator tests."""

from io import StringIO
from typing import Dict, List, Optional, Sequence

import pytest
from rich.console import Console

from domain_migrator.migration.backups import BackupManager
from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.context import MigrationContext
from domain_migrator.migration.runner import CommandResult, CommandRunner, DryRunRunner
from domain_migrator.migration.state import MigrationMode
from domain_migrator.migration.ui import MigrationUI


class FakeRunner(CommandRunner):
    """Scripted command runner; file operations are real.

    ``responses`` maps a command prefix (tuple) to ``(returncode, stdout)`` or
    to a list of them consumed in order (the last one repeats). The longest
    matching prefix wins; unscripted commands succeed with no output.
    """

    def __init__(self, responses: Optional[Dict[tuple, object]] = None, missing: Sequence[str] = (), **kwargs):
        super().__init__(**kwargs)
        self.responses = dict(responses or {})
        self.missing = set(missing)
        self.calls: List[dict] = []

    def run(self, command, mutating=True, input_text=None, status=None) -> CommandResult:
        cmd = [str(part) for part in command]
        self.calls.append({"command": cmd, "mutating": mutating, "input": input_text})

        response = (0, "")
        for length in range(len(cmd), 0, -1):
            key = tuple(cmd[:length])
            if key in self.responses:
                response = self.responses[key]
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                break
        returncode, stdout = response
        return CommandResult(cmd, returncode, stdout, "" if returncode == 0 else "failed")

    def which(self, name: str) -> bool:
        return name not in self.missing

    def commands(self) -> List[List[str]]:
        return [call["command"] for call in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(cmd[:len(prefix)] == list(prefix) for cmd in self.commands())


class ScriptedUI(MigrationUI):
    """MigrationUI that answers prompts from a table keyed by prompt substring."""

    def __init__(self, answers: Optional[Dict[str, object]] = None):
        self.output = StringIO()
        super().__init__(Console(file=self.output, width=120, force_terminal=False))
        self.answers = dict(answers or {})
        self.prompts: List[str] = []

    def _answer(self, prompt: str):
        self.prompts.append(prompt)
        for key in sorted(self.answers, key=len, reverse=True):
            if key in prompt:
                return True, self.answers[key]
        return False, None

    def prompt_text(self, prompt, default="", required=False, validator=None, error_message="Invalid input"):
        found, value = self._answer(prompt)
        if found:
            return value
        if default:
            return default
        raise AssertionError(f"Unexpected text prompt: {prompt}")

    def prompt_password(self, prompt, required=False):
        found, value = self._answer(prompt)
        if found:
            return value
        raise AssertionError(f"Unexpected password prompt: {prompt}")

    def prompt_confirm(self, prompt, default=False):
        found, value = self._answer(prompt)
        return value if found else default

    def prompt_choice(self, prompt, choices, default=None):
        found, value = self._answer(prompt)
        return value if found else default

    def countdown(self, seconds, message):
        self.print_warning(f"{message} (countdown {seconds}s)")

    def text(self) -> str:
        return self.output.getvalue()


@pytest.fixture
def settings(tmp_path) -> MigrationSettings:
    """Settings with every host path redirected under tmp_path."""
    etc = tmp_path / "etc"
    (etc / "sssd").mkdir(parents=True)
    (etc / "pam.d").mkdir()
    (etc / "sudoers.d").mkdir()
    (tmp_path / "home").mkdir()

    settings = MigrationSettings(
        state_file=tmp_path / "state" / "migration-state",
        rollback_dir=tmp_path / "rollbacks",
        hosts_file=etc / "hosts",
        krb5_conf=etc / "krb5.conf",
        sssd_conf=etc / "sssd" / "sssd.conf",
        nsswitch_conf=etc / "nsswitch.conf",
        pam_common_session=etc / "pam.d" / "common-session",
        sudoers_dir=etc / "sudoers.d",
        resolv_conf=etc / "resolv.conf",
        debian_version_file=etc / "debian_version",
        dmi_product_file=tmp_path / "product_name",
        sssd_log=tmp_path / "sssd.log",
        home_root=tmp_path / "home",
        log_dir=tmp_path / "log",
        report_dir=tmp_path / "reports",
        restore_root=tmp_path / "restore",
        disk_check_path=tmp_path,
        snapshot_paths=[str(etc / "hosts"), str(etc / "krb5.conf"), str(etc / "sssd")],
        time_sync_wait_seconds=0,
        service_settle_seconds=0,
        logout_countdown_seconds=0,
        reboot_countdown_seconds=0,
    )
    return settings


@pytest.fixture
def host_files(settings) -> Dict[str, str]:
    """Populate the redirected /etc with a host joined to old.local."""
    contents = {
        "hosts": "127.0.0.1       localhost\n127.0.1.1       oldhost.old.local oldhost\n",
        "krb5": "[libdefaults]\n    default_realm = OLD.LOCAL\n",
        "sssd": "[sssd]\ndomains = old.local\n\n[domain/old.local]\nad_server = dc9.old.local\n",
        "nsswitch": "passwd:         files\ngroup:          files\nshadow:         files\nhosts:          files dns\n",
    }
    settings.hosts_file.write_text(contents["hosts"])
    settings.krb5_conf.write_text(contents["krb5"])
    settings.sssd_conf.write_text(contents["sssd"])
    settings.nsswitch_conf.write_text(contents["nsswitch"])
    settings.pam_common_session.write_text("session optional pam_mkhomedir.so skel=/etc/skel umask=0077\n")
    settings.resolv_conf.write_text("nameserver 10.0.0.2\n")
    settings.debian_version_file.write_text("12.5\n")
    return contents


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ui() -> ScriptedUI:
    return ScriptedUI()


@pytest.fixture
def no_local_ports(monkeypatch):
    monkeypatch.setattr("domain_migrator.migration.preflight.port_in_use", lambda port: False)


@pytest.fixture
def make_context(settings, runner, ui):
    """Build a MigrationContext; dry-run contexts wrap the fake runner for queries."""

    def factory(mode: MigrationMode = MigrationMode.LIVE, **params) -> MigrationContext:
        active = DryRunRunner(query_runner=runner, ui=ui) if mode.is_dry_run else runner
        ctx = MigrationContext(
            mode=mode,
            settings=settings,
            runner=active,
            ui=ui,
            backups=BackupManager(active, settings.rollback_dir, settings.restore_root),
            run_timestamp="20240102_030405",
        )
        ctx.sleep = lambda seconds: None
        for key, value in params.items():
            setattr(ctx.params, key, value)
        return ctx

    return factory
