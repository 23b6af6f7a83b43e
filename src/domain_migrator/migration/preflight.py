"""
Pre-Migration Checks

System readiness checks. Each check reports pass/warn/info; the only side
effects are fixes the operator explicitly agrees to.
"""

import shutil
import socket
from dataclasses import dataclass
from typing import List, TYPE_CHECKING

from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)

PASS = "pass"
WARN = "warn"
INFO = "info"

VIRTUAL_PLATFORMS = ("VMware", "VirtualBox", "KVM")


@dataclass
class CheckResult:
    """Result of a single readiness check."""
    name: str
    status: str
    message: str
    fixed: bool = False

    @property
    def passed(self) -> bool:
        return self.status == PASS

    def as_row(self):
        return self.name, self.status, self.message


def port_in_use(port: int, host: str = "127.0.0.1", timeout: float = 3.0) -> bool:
    """True if something accepts TCP connections on the local port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def check_distribution(ctx: "MigrationContext") -> CheckResult:
    path = ctx.settings.debian_version_file
    try:
        version = path.read_text().strip()
    except OSError:
        return CheckResult("Distribution", WARN, f"{path} not found; this tool targets Debian-based systems")
    return CheckResult("Distribution", PASS, f"Debian {version}")


def check_connectivity(ctx: "MigrationContext") -> CheckResult:
    target = ctx.settings.connectivity_target
    if ctx.runner.query(["ping", "-c", "1", "-W", "3", target]).ok:
        return CheckResult("Internet connectivity", PASS, "OK")
    return CheckResult("Internet connectivity", WARN, "FAILED - Check network connection")


def check_dns(ctx: "MigrationContext") -> CheckResult:
    if ctx.runner.query(["nslookup", ctx.settings.dns_probe_name]).ok:
        return CheckResult("DNS resolution", PASS, "OK")
    return CheckResult("DNS resolution", WARN, "FAILED - Check DNS configuration")


def check_ad_ports(ctx: "MigrationContext") -> List[CheckResult]:
    results = []
    for port in ctx.settings.ad_ports:
        if port_in_use(port):
            results.append(CheckResult(f"Port {port}", INFO, "IN USE (may conflict with AD services)"))
    if not results:
        results.append(CheckResult("AD ports", PASS, "No local listeners on AD ports"))
    return results


def check_disk_space(ctx: "MigrationContext") -> CheckResult:
    try:
        free_mb = shutil.disk_usage(ctx.settings.disk_check_path).free // (1024 * 1024)
    except OSError as e:
        return CheckResult("Disk space", WARN, f"Cannot determine free space: {e}")
    if free_mb > ctx.settings.min_free_disk_mb:
        return CheckResult("Disk space", PASS, f"OK ({free_mb}MB available)")
    return CheckResult("Disk space", WARN, f"LOW ({free_mb}MB available) - Consider freeing space")


def active_users(ctx: "MigrationContext") -> List[str]:
    """Distinct logged-in users from `who`, excluding the safety account."""
    result = ctx.runner.query(["who"])
    users = []
    for line in result.lines():
        user = line.split()[0]
        if user != ctx.settings.safety_account and user not in users:
            users.append(user)
    return users


def check_active_sessions(ctx: "MigrationContext") -> CheckResult:
    users = active_users(ctx)
    if not users:
        return CheckResult("Active sessions", PASS, "No active user sessions detected")

    ui = ctx.ui
    ui.print_warning(f"Found {len(users)} active user(s): {', '.join(users)}")
    ui.print_warning("Active users will be logged out during migration!")
    seconds = ctx.settings.logout_countdown_seconds
    if not ui.prompt_confirm(f"Do you want to continue? Users will be logged out in {seconds} seconds.", default=False):
        ui.print_warning("Continuing migration with active users logged in")
        return CheckResult("Active sessions", WARN, f"{len(users)} user(s) still logged in")

    ctx.runner.run(["wall", f"System maintenance in {seconds} seconds - please save your work and log out"])
    if not ctx.dry_run:
        ui.countdown(seconds, "Logging out active users")
    for user in users:
        ctx.runner.run(["pkill", "-u", user])
    return CheckResult("Active sessions", PASS, f"Logged out {len(users)} user(s)", fixed=True)


def check_conflicting_services(ctx: "MigrationContext") -> List[CheckResult]:
    results = []
    for service in ctx.settings.conflicting_services:
        if not ctx.runner.query(["systemctl", "is-active", "--quiet", service]).ok:
            continue

        ctx.ui.print_warning(f"Service {service} is running - may conflict with SSSD")
        if ctx.ui.prompt_confirm(f"Do you want to stop {service} service?", default=False):
            if ctx.runner.run(["systemctl", "stop", service]).ok:
                results.append(CheckResult(f"Service {service}", PASS, "stopped", fixed=True))
            else:
                results.append(CheckResult(f"Service {service}", WARN, "could not be stopped"))
        else:
            results.append(CheckResult(f"Service {service}", WARN, "running (may conflict with SSSD)"))

    if not results:
        results.append(CheckResult("Conflicting services", PASS, "None running"))
    return results


def check_virtualization(ctx: "MigrationContext") -> CheckResult:
    try:
        product = ctx.settings.dmi_product_file.read_text().strip()
    except OSError:
        return CheckResult("Platform", INFO, "Unknown")
    if any(platform in product for platform in VIRTUAL_PLATFORMS):
        return CheckResult("Platform", INFO, f"Virtual machine ({product}); domain joins may need extra configuration")
    return CheckResult("Platform", PASS, product or "Unknown")


def time_synchronized(ctx: "MigrationContext") -> bool:
    result = ctx.runner.query(["timedatectl", "status"])
    return result.ok and "synchronized: yes" in result.stdout


def check_time_sync(ctx: "MigrationContext") -> CheckResult:
    if not ctx.runner.which("timedatectl"):
        return CheckResult("Time synchronisation", WARN, "timedatectl not available - cannot verify time sync")

    if time_synchronized(ctx):
        return CheckResult("Time synchronisation", PASS, "OK")

    ctx.ui.print_warning("Time is not synchronised; Kerberos authentication may fail")
    if not ctx.ui.prompt_confirm("Enable NTP synchronisation now?", default=True):
        return CheckResult("Time synchronisation", WARN, "Not synchronised - Kerberos may not work")

    ctx.runner.run(["timedatectl", "set-ntp", "true"])
    if ctx.dry_run:
        return CheckResult("Time synchronisation", INFO, "NTP would be enabled")

    ctx.sleep(ctx.settings.time_sync_wait_seconds)
    if time_synchronized(ctx):
        return CheckResult("Time synchronisation", PASS, "Fixed", fixed=True)
    return CheckResult("Time synchronisation", WARN, "Still not synchronised - Kerberos may not work")


def run_preflight_checks(ctx: "MigrationContext") -> List[CheckResult]:
    """Run every readiness check and return the combined results."""
    results: List[CheckResult] = [
        check_distribution(ctx),
        check_connectivity(ctx),
        check_dns(ctx),
    ]
    results.extend(check_ad_ports(ctx))
    results.append(check_disk_space(ctx))
    results.append(check_active_sessions(ctx))
    results.extend(check_conflicting_services(ctx))
    results.append(check_virtualization(ctx))
    results.append(check_time_sync(ctx))

    for result in results:
        logger.info("Check %s: %s %s", result.name, result.status, result.message)
    return results
