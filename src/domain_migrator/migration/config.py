"""
Domain Migration Settings

Host paths and tunables, optionally overridden from a YAML settings file.
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from domain_migrator.migration.exceptions import ConfigError


DEFAULT_CONFIG_PATH = Path("/etc/domain-migrator/config.yaml")

PATH_FIELDS = {
    "state_file", "rollback_dir", "hosts_file", "krb5_conf", "sssd_conf",
    "nsswitch_conf", "pam_common_session", "sudoers_dir", "resolv_conf",
    "debian_version_file", "dmi_product_file", "sssd_log", "home_root",
    "log_dir", "report_dir", "restore_root", "disk_check_path",
}


@dataclass
class MigrationSettings:
    """Everything the migration needs to know about the host."""

    state_file: Path = Path("/tmp/migration-state")
    rollback_dir: Path = Path("/root/migration-rollbacks")

    # Files backed up before mutation and restored by --revert
    hosts_file: Path = Path("/etc/hosts")
    krb5_conf: Path = Path("/etc/krb5.conf")
    sssd_conf: Path = Path("/etc/sssd/sssd.conf")

    nsswitch_conf: Path = Path("/etc/nsswitch.conf")
    pam_common_session: Path = Path("/etc/pam.d/common-session")
    sudoers_dir: Path = Path("/etc/sudoers.d")
    resolv_conf: Path = Path("/etc/resolv.conf")
    debian_version_file: Path = Path("/etc/debian_version")
    dmi_product_file: Path = Path("/sys/class/dmi/id/product_name")
    sssd_log: Path = Path("/var/log/sssd/sssd.log")
    home_root: Path = Path("/home")
    log_dir: Path = Path("/var/log/domain-migrator")
    report_dir: Path = Path("/tmp")
    restore_root: Path = Path("/")
    disk_check_path: Path = Path("/")

    snapshot_paths: List[str] = field(default_factory=lambda: [
        "/etc/hosts",
        "/etc/krb5.conf",
        "/etc/sssd/sssd.conf",
        "/etc/resolv.conf",
        "/etc/network/interfaces",
        "/etc/netplan/*.yaml",
        "/etc/hostname",
        "/etc/machine-id",
        "/var/lib/sss",
        "/etc/passwd",
        "/etc/group",
        "/etc/shadow",
        "/etc/gshadow",
    ])

    package_manager: str = "apt-get"
    packages: List[str] = field(default_factory=lambda: [
        "realmd", "sssd", "sssd-tools", "adcli", "libnss-sss", "libpam-sss",
        "samba-common-bin", "packagekit", "krb5-user", "oddjob", "oddjob-mkhomedir",
    ])
    upgrade_packages: bool = False

    safety_account: str = "backup"
    computer_ou: str = "Computers"
    dc_name_prefixes: List[str] = field(default_factory=lambda: ["dc1", "dc", "ad", "ldap", "dc2"])
    conflicting_services: List[str] = field(default_factory=lambda: ["winbind", "samba", "nmbd", "smbd"])
    ad_ports: List[int] = field(default_factory=lambda: [389, 636, 88, 464, 135, 139, 445])
    connectivity_target: str = "8.8.8.8"
    dns_probe_name: str = "google.com"
    min_free_disk_mb: int = 1024
    sudo_groups: List[str] = field(default_factory=lambda: ["domain^users", "sudoers", "administrators"])

    time_sync_wait_seconds: int = 10
    service_settle_seconds: int = 5
    logout_countdown_seconds: int = 30
    reboot_countdown_seconds: int = 10
    command_timeout_seconds: int = 600

    @property
    def tracked_files(self) -> Dict[str, Path]:
        """Configuration files that are backed up and restored, by label."""
        return {
            "Hosts": self.hosts_file,
            "Kerberos": self.krb5_conf,
            "SSSD": self.sssd_conf,
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        return {key: str(value) if isinstance(value, Path) else value for key, value in data.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(
                f"Unknown setting(s): {', '.join(unknown)}",
                config_key=unknown[0]
            )

        values = {}
        for key, value in data.items():
            if key in PATH_FIELDS:
                if not isinstance(value, str) or not value:
                    raise ConfigError(f"Setting '{key}' must be a path", config_key=key)
                value = Path(value).expanduser()
            values[key] = value
        return cls(**values)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "MigrationSettings":
        """Load settings from YAML, falling back to defaults.

        The file is taken from ``path``, then ``DOMAIN_MIGRATOR_CONFIG``, then
        the default location. A missing default file is not an error; a
        missing explicitly requested file is.
        """
        explicit = path is not None or bool(os.environ.get("DOMAIN_MIGRATOR_CONFIG"))
        if path is None:
            path = Path(os.environ.get("DOMAIN_MIGRATOR_CONFIG", DEFAULT_CONFIG_PATH))

        if not path.exists():
            if explicit:
                raise ConfigError(
                    f"Settings file not found: {path}",
                    remediation="Pass an existing file with --config or unset DOMAIN_MIGRATOR_CONFIG"
                )
            return cls()

        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse settings file {path}", details=str(e))

        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")

        return cls.from_dict(data)
