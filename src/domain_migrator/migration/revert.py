"""
Migration Revert

Restore the host from the most recent rollback point or, failing that, from
the most recent backup of each configuration file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from domain_migrator.migration.backups import BackupManager, BackupRecord, SnapshotRecord
from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.discovery import parse_realm_list
from domain_migrator.migration.exceptions import NoBackupsFoundError
from domain_migrator.migration.logging_config import get_logger
from domain_migrator.migration.runner import CommandRunner
from domain_migrator.migration.steps.profiles import MIGRATION_LOG_PREFIX
from domain_migrator.migration.ui import MigrationUI


logger = get_logger(__name__)


@dataclass
class RevertOutcome:
    """What a revert did."""
    snapshot_restored: Optional[SnapshotRecord] = None
    restored: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    profiles_restored: List[Tuple[Path, Path]] = field(default_factory=list)
    cancelled: bool = False
    reboot_requested: bool = False


class RevertController:
    """Undoes a migration."""

    def __init__(
        self,
        settings: MigrationSettings,
        runner: CommandRunner,
        ui: MigrationUI,
        backups: Optional[BackupManager] = None
    ):
        self.settings = settings
        self.runner = runner
        self.ui = ui
        self.backups = backups or BackupManager(runner, settings.rollback_dir, settings.restore_root)

    def revert(self) -> RevertOutcome:
        """Run the interactive revert.

        Raises:
            NoBackupsFoundError: If there is no rollback point and no file backup
            SnapshotError: If the chosen rollback point cannot be extracted
        """
        ui = self.ui
        outcome = RevertOutcome()

        snapshot = self.backups.latest_snapshot()
        file_backups: Dict[str, Optional[BackupRecord]] = {
            label: self.backups.latest_backup(path)
            for label, path in self.settings.tracked_files.items()
        }

        if snapshot is None and not any(file_backups.values()):
            searched = [str(self.settings.rollback_dir)] + [
                f"{path}.backup.*" for path in self.settings.tracked_files.values()
            ]
            raise NoBackupsFoundError(searched=searched)

        if snapshot is not None and self._confirm_snapshot(snapshot):
            with ui.status("Restoring from rollback point..."):
                self.backups.restore_snapshot(snapshot)
            outcome.snapshot_restored = snapshot
            logger.info("Reverted from rollback point %s", snapshot.archive_path)
            ui.print_success("System restored from rollback point")
        elif not self._restore_files(file_backups, outcome):
            outcome.cancelled = True
            ui.print_warning("Revert cancelled.")
            return outcome

        self._restart_sssd()
        outcome.profiles_restored = self.restore_profile_links()
        self._offer_log_removal()
        self._show_domain_status()
        self.settings.state_file.unlink(missing_ok=True)

        ui.show_completion_panel(
            "Revert Complete",
            "The system has been reverted to the previous domain configuration.\n"
            "A reboot is recommended to ensure all changes take effect.",
            []
        )
        if ui.prompt_confirm("Do you want to reboot now?", default=False):
            outcome.reboot_requested = True
            ui.countdown(self.settings.reboot_countdown_seconds, "Rebooting")
            self.runner.run(["reboot"])
        else:
            ui.print_info("Please reboot manually when ready: sudo reboot")
        return outcome

    def _confirm_snapshot(self, snapshot: SnapshotRecord) -> bool:
        ui = self.ui
        ui.print_info(f"Found rollback point: {snapshot.archive_path}")
        if snapshot.domain or snapshot.created_at:
            ui.print_info(f"Created {snapshot.created_at} before migrating to {snapshot.domain or 'unknown domain'}")
        if not ui.prompt_confirm("Do you want to use the rollback point for complete restoration?", default=False):
            return False
        ui.print_warning("This will completely restore your system to the previous state!")
        return ui.prompt_confirm("Are you sure? This cannot be undone!", default=False)

    def _restore_files(self, file_backups: Dict[str, Optional[BackupRecord]], outcome: RevertOutcome) -> bool:
        """Restore the latest backup of each tracked file. False if cancelled."""
        ui = self.ui
        if not any(file_backups.values()):
            ui.print_warning("No configuration file backups found")
            return False

        ui.print_info("Using file-based revert. Found backup files:")
        for label, record in file_backups.items():
            if record:
                ui.console.print(f"  {label}: {record.backup_path}")
            else:
                ui.console.print(f"  {label}: [dim]not found[/dim]")

        if not ui.prompt_confirm("Do you want to proceed with reverting?", default=False):
            return False

        for label, record in file_backups.items():
            if record is None:
                ui.print_warning(f"{label} backup not found, skipping")
                outcome.not_found.append(label)
                continue
            self.backups.restore_file(record)
            logger.info("Restored %s from %s", record.original_path, record.backup_path)
            outcome.restored.append(label)
            ui.print_success(f"{label} configuration restored from {record.backup_path}")
        return True

    def _restart_sssd(self):
        if not self.runner.run(["sssctl", "cache-remove", "--override", "--stop", "--start"]).ok:
            self.ui.print_warning("Could not clear SSSD cache")
        if self.runner.run(["systemctl", "restart", "sssd"]).ok:
            self.ui.print_success("SSSD service restarted")
        else:
            self.ui.print_warning("SSSD service could not be restarted")

    def restore_profile_links(self) -> List[Tuple[Path, Path]]:
        """Move migrated home directories back over their compatibility symlinks."""
        home_root = self.settings.home_root
        restored = []
        if not home_root.is_dir():
            return restored

        for link in sorted(home_root.iterdir()):
            if not link.is_symlink() or "@" not in link.name:
                continue
            target = Path(os.readlink(link))
            if not target.is_absolute():
                target = link.parent / target
            if not target.is_dir():
                continue

            self.runner.remove_file(link)
            self.runner.move_path(target, link)
            restored.append((target, link))
            self.ui.print_success(f"Restored profile {link}")
        return restored

    def _offer_log_removal(self):
        logs = sorted(self.settings.log_dir.glob(f"{MIGRATION_LOG_PREFIX}*.log")) if self.settings.log_dir.is_dir() else []
        if not logs:
            return
        self.ui.print_info("User migration logs found:")
        for log in logs:
            self.ui.console.print(f"  {log}")
        if self.ui.prompt_confirm("Do you want to remove user migration logs?", default=False):
            for log in logs:
                self.runner.remove_file(log)
            self.ui.print_success("User migration logs removed")

    def _show_domain_status(self):
        result = self.runner.query(["realm", "list"])
        domains = parse_realm_list(result.stdout) if result.ok else []
        if domains:
            self.ui.print_info(f"Current domain membership: {', '.join(domains)}")
        else:
            self.ui.print_info("No domains currently joined")
