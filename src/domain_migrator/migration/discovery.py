"""
Domain Discovery

Finds domain controllers for the target domain and reports the domains the
host is currently joined to.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.logging_config import get_logger
from domain_migrator.migration.runner import CommandRunner


logger = get_logger(__name__)

SOURCE_DNS_SRV = "DNS SRV records"
SOURCE_NAMES = "conventional names"
SOURCE_SSSD = "SSSD configuration"
SOURCE_FALLBACK = "fallback"

AD_SERVER_PATTERN = re.compile(r"^\s*ad_server\s*=\s*(.+?)\s*$", re.MULTILINE)


@dataclass
class DiscoveryResult:
    """Domain controllers found by the first source that returned any."""
    domain: str
    controllers: List[str] = field(default_factory=list)
    source: str = SOURCE_FALLBACK

    @property
    def selected(self) -> str:
        return self.controllers[0]

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK


def parse_srv_records(output: str) -> List[str]:
    """Targets from `dig +short ... SRV` lines (`prio weight port target.`)."""
    targets = []
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 4 and parts[0].isdigit():
            target = parts[3].rstrip(".")
            if target and target not in targets:
                targets.append(target)
    return targets


def discover_via_srv(runner: CommandRunner, domain: str) -> List[str]:
    result = runner.query(["dig", "+short", f"_ldap._tcp.{domain}", "SRV"])
    if not result.ok:
        return []
    return parse_srv_records(result.stdout)


def discover_via_names(runner: CommandRunner, domain: str, prefixes: List[str]) -> List[str]:
    """Ping conventional controller names; return those that answer."""
    found = []
    for prefix in prefixes:
        candidate = f"{prefix}.{domain}"
        if runner.query(["ping", "-c", "1", "-W", "2", candidate]).ok:
            found.append(candidate)
    return found


def discover_via_sssd(sssd_conf: Path) -> List[str]:
    """The `ad_server` value(s) from an existing sssd.conf."""
    try:
        text = Path(sssd_conf).read_text()
    except OSError:
        return []
    match = AD_SERVER_PATTERN.search(text)
    if not match:
        return []
    return [server.strip() for server in match.group(1).split(",") if server.strip()]


def discover_domain_controllers(
    runner: CommandRunner,
    domain: str,
    settings: MigrationSettings
) -> DiscoveryResult:
    """Try each discovery source in order; the first non-empty one wins.

    Falls back to `dc1.<domain>` when every source comes back empty.
    """
    sources = [
        (SOURCE_DNS_SRV, lambda: discover_via_srv(runner, domain)),
        (SOURCE_NAMES, lambda: discover_via_names(runner, domain, settings.dc_name_prefixes)),
        (SOURCE_SSSD, lambda: discover_via_sssd(settings.sssd_conf)),
    ]
    for source, probe in sources:
        controllers = probe()
        if controllers:
            logger.info("Found domain controllers via %s: %s", source, ", ".join(controllers))
            return DiscoveryResult(domain, controllers, source)

    fallback = f"dc1.{domain}"
    logger.warning("No domain controllers discovered for %s, falling back to %s", domain, fallback)
    return DiscoveryResult(domain, [fallback], SOURCE_FALLBACK)


def parse_realm_list(output: str) -> List[str]:
    """Realm names are the unindented lines of `realm list`."""
    return [
        line.strip()
        for line in output.splitlines()
        if line.strip() and not line[0].isspace()
    ]


def list_joined_domains(runner: CommandRunner) -> List[str]:
    result = runner.query(["realm", "list"])
    if not result.ok:
        return []
    return parse_realm_list(result.stdout)


def primary_ip_address(runner: CommandRunner) -> Optional[str]:
    """First address reported by `hostname -I`."""
    result = runner.query(["hostname", "-I"])
    if not result.ok or not result.stdout.split():
        return None
    return result.stdout.split()[0]
