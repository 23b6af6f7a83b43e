"""
Migration Context

Everything a step handler needs, passed explicitly from step to step.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from domain_migrator.migration.backups import BackupManager, BackupRecord, SnapshotRecord, make_timestamp
from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.exceptions import StateError
from domain_migrator.migration.runner import CommandRunner
from domain_migrator.migration.state import MigrationMode
from domain_migrator.migration.ui import MigrationUI
from domain_migrator.migration.validators import (
    validate_domain, validate_email, validate_hostname, validate_username
)

if TYPE_CHECKING:
    from domain_migrator.migration.discovery import DiscoveryResult
    from domain_migrator.migration.preflight import CheckResult


# Requirements that survive a restart (stored in the state file)
PERSISTED_REQUIREMENTS = {"domain", "hostname"}


@dataclass
class MigrationParameters:
    """Operator-supplied values for one migration."""
    domain: str = ""
    hostname: str = ""
    admin_user: str = ""
    old_admin_user: str = ""
    credential: str = field(default="", repr=False)
    old_credential: str = field(default="", repr=False)

    @property
    def fqdn(self) -> str:
        if not self.hostname or not self.domain:
            return ""
        return f"{self.hostname}.{self.domain}"

    @property
    def realm(self) -> str:
        return self.domain.upper()

    def clear_credentials(self):
        self.credential = ""
        self.old_credential = ""

    def summary(self) -> dict:
        return {
            "Domain": self.domain,
            "Hostname": self.fqdn or self.hostname,
            "Admin account": self.admin_user,
            "Admin password": self.credential,
        }


@dataclass
class MigrationContext:
    """State shared by the step handlers of one run."""
    mode: MigrationMode
    settings: MigrationSettings
    runner: CommandRunner
    ui: MigrationUI
    backups: BackupManager
    params: MigrationParameters = field(default_factory=MigrationParameters)
    run_timestamp: str = field(default_factory=make_timestamp)

    # Findings collected while the run progresses
    current_domains: List[str] = field(default_factory=list)
    discovery: Optional["DiscoveryResult"] = None
    checks: List["CheckResult"] = field(default_factory=list)
    created_backups: List[BackupRecord] = field(default_factory=list)
    snapshot: Optional[SnapshotRecord] = None
    migrated_profiles: List[Tuple[Path, Path]] = field(default_factory=list)
    report_path: Optional[Path] = None
    reboot_requested: bool = False

    sleep: Callable[[float], None] = time.sleep

    @property
    def dry_run(self) -> bool:
        return self.mode.is_dry_run

    @property
    def domain_controller(self) -> Optional[str]:
        return self.discovery.selected if self.discovery else None

    def ensure_domain_controller(self) -> str:
        """Return the selected domain controller, discovering it if needed."""
        if self.discovery is None:
            from domain_migrator.migration.discovery import discover_domain_controllers
            self.discovery = discover_domain_controllers(self.runner, self.params.domain, self.settings)
        return self.discovery.selected

    def require(self, requirement: str):
        """Make sure a step requirement is available.

        Transient values are re-prompted; persisted ones must already be set.

        Raises:
            StateError: If a persisted value is missing
        """
        if requirement in PERSISTED_REQUIREMENTS:
            if not getattr(self.params, requirement):
                raise StateError(
                    f"Migration {requirement} is missing from the saved progress",
                    state_file=str(self.settings.state_file)
                )
        elif requirement == "admin":
            self.ensure_admin()
        elif requirement == "credential":
            self.ensure_credential()
        elif requirement == "old_admin":
            self.ensure_old_admin()
        else:
            raise ValueError(f"Unknown step requirement: {requirement}")

    # Prompts

    def prompt_domain(self) -> str:
        domain = self.ui.prompt_text(
            "Enter your NEW domain (e.g., newdomain.com)",
            default=self.params.domain,
            required=True,
            validator=validate_domain,
            error_message="Invalid domain"
        )
        self.params.domain = domain.lower()
        return self.params.domain

    def prompt_hostname(self) -> str:
        self.params.hostname = self.ui.prompt_text(
            "Enter new short hostname (e.g., myhost)",
            default=self.params.hostname,
            required=True,
            validator=validate_hostname,
            error_message="Invalid hostname"
        )
        return self.params.hostname

    def ensure_admin(self) -> str:
        if self.params.admin_user:
            return self.params.admin_user

        if self.dry_run:
            self.params.admin_user = f"admin@{self.params.domain}"
            return self.params.admin_user

        while True:
            username = self.ui.prompt_text(
                "Enter admin username (e.g., admin)",
                required=True,
                validator=validate_username,
                error_message="Invalid username"
            )
            identity = f"{username}@{self.params.domain}"
            valid, message = validate_email(identity)
            if valid:
                break
            self.ui.print_error(f"Invalid admin account {identity}: {message}")

        self.params.admin_user = identity
        self.ui.print_success(f"Admin username set: {identity}")
        return identity

    def ensure_credential(self):
        """Ask for the admin password unless it is already held (never in dry-run)."""
        if self.params.credential or self.dry_run:
            return
        self.params.credential = self.ui.prompt_password(
            f"Enter password for {self.ensure_admin()}",
            required=True
        )

    def ensure_old_admin(self) -> str:
        if self.params.old_admin_user:
            return self.params.old_admin_user

        old_domain = self.current_domains[0] if self.current_domains else ""
        default = f"admin@{old_domain}" if old_domain else ""
        self.params.old_admin_user = self.ui.prompt_text(
            "Enter an admin account for the OLD domain",
            default=default,
            required=True,
            validator=validate_email,
            error_message="Invalid admin account"
        )
        if not self.dry_run:
            self.params.old_credential = self.ui.prompt_password(
                f"Enter password for {self.params.old_admin_user} (if required)"
            )
        return self.params.old_admin_user
