"""
Verification Steps

Confirm the join took effect (fatal if not) and run a wider set of health
checks whose problems are reported but never stop the migration.
"""

from pathlib import Path
from typing import List, Optional, TYPE_CHECKING

from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.discovery import list_joined_domains
from domain_migrator.migration.exceptions import ExternalOperationError
from domain_migrator.migration.preflight import CheckResult, INFO, PASS, WARN
from domain_migrator.migration.runner import CommandRunner

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


FAIL = "fail"
SSSD_LOG_TAIL = 200


def _file_contains(path: Path, needle: str) -> Optional[bool]:
    try:
        return needle in path.read_text()
    except OSError:
        return None


def _sssd_log_errors(path: Path) -> Optional[int]:
    try:
        lines = path.read_text(errors="replace").splitlines()[-SSSD_LOG_TAIL:]
    except OSError:
        return None
    return sum(1 for line in lines if "error" in line.lower())


def verify_migration(
    runner: CommandRunner,
    settings: MigrationSettings,
    domain: str,
    fqdn: str = "",
    domain_controller: Optional[str] = None
) -> List[CheckResult]:
    """Health checks for a host joined to `domain`."""
    realm = domain.upper()
    results: List[CheckResult] = []

    if domain in list_joined_domains(runner):
        results.append(CheckResult("Domain membership", PASS, f"Joined to {domain}"))
    else:
        results.append(CheckResult("Domain membership", FAIL, f"Not joined to {domain}"))

    sssd_domains = runner.query(["sssctl", "domain-list"]).lines()
    if domain in sssd_domains:
        results.append(CheckResult("SSSD configuration", PASS, f"Domain {domain} is configured"))
    else:
        results.append(CheckResult("SSSD configuration", WARN, "Domain not listed by sssctl"))

    for database, label in (("passwd", "User lookup"), ("group", "Group lookup")):
        entries = [line for line in runner.query(["getent", database]).lines() if f"@{domain}" in line]
        if entries:
            results.append(CheckResult(label, PASS, f"{len(entries)} domain entries"))
        else:
            results.append(CheckResult(label, INFO, "No domain entries yet (normal before first login)"))

    if realm in runner.query(["klist"]).stdout:
        results.append(CheckResult("Kerberos", PASS, "Valid tickets found"))
    else:
        results.append(CheckResult("Kerberos", INFO, "No tickets (normal until a user authenticates)"))

    if runner.query(["systemctl", "is-active", "--quiet", "sssd"]).ok:
        results.append(CheckResult("SSSD service", PASS, "Running"))
    else:
        results.append(CheckResult("SSSD service", FAIL, "Not running"))

    if runner.query(["nslookup", domain]).ok:
        results.append(CheckResult("DNS", PASS, f"{domain} resolves"))
    else:
        results.append(CheckResult("DNS", WARN, f"{domain} does not resolve"))

    if domain_controller:
        if runner.query(["ping", "-c", "1", "-W", "2", domain_controller]).ok:
            results.append(CheckResult("Domain controller", PASS, f"Can reach {domain_controller}"))
        else:
            results.append(CheckResult("Domain controller", WARN, f"Cannot ping {domain_controller} (ICMP may be blocked)"))

    errors = _sssd_log_errors(settings.sssd_log)
    if errors is None:
        results.append(CheckResult("SSSD log", INFO, f"{settings.sssd_log} not readable"))
    elif errors:
        results.append(CheckResult("SSSD log", WARN, f"{errors} error line(s) in recent entries"))
    else:
        results.append(CheckResult("SSSD log", PASS, "No recent errors"))

    if fqdn:
        current = runner.query(["hostname"]).stdout.strip()
        if current == fqdn:
            results.append(CheckResult("Hostname", PASS, fqdn))
        else:
            results.append(CheckResult("Hostname", WARN, f"{current or 'unknown'} (expected {fqdn})"))

        if _file_contains(settings.hosts_file, fqdn):
            results.append(CheckResult("Hosts file", PASS, f"Contains {fqdn}"))
        else:
            results.append(CheckResult("Hosts file", WARN, f"No entry for {fqdn}"))

    file_checks = (
        ("Kerberos configuration", settings.krb5_conf, realm),
        ("NSS configuration", settings.nsswitch_conf, "sss"),
        ("PAM configuration", settings.pam_common_session, "mkhomedir"),
    )
    for label, path, needle in file_checks:
        found = _file_contains(path, needle)
        if found:
            results.append(CheckResult(label, PASS, f"{path} configured"))
        elif found is None:
            results.append(CheckResult(label, WARN, f"{path} not found"))
        else:
            results.append(CheckResult(label, WARN, f"'{needle}' missing from {path}"))

    return results


def join_verification_step(ctx: "MigrationContext") -> bool:
    """The host must now be a member of the new domain."""
    domain = ctx.params.domain
    if ctx.dry_run:
        ctx.runner.record("query", f"verify membership of {domain}")
        return True

    joined = list_joined_domains(ctx.runner)
    ctx.ui.print_info(f"Current domain membership: {', '.join(joined) or 'none'}")
    if domain not in joined:
        raise ExternalOperationError(
            f"Domain membership verification failed: not joined to {domain}",
            command=["realm", "list"],
            returncode=0,
            output="\n".join(joined)
        )

    ctx.ui.print_success(f"Domain membership: OK - Computer is joined to {domain}")
    return True


def post_verification_step(ctx: "MigrationContext") -> bool:
    """Report on the health of the new configuration; never fatal."""
    if ctx.dry_run:
        ctx.runner.record("query", "perform post-migration verification")
        return True

    results = verify_migration(
        ctx.runner,
        ctx.settings,
        ctx.params.domain,
        ctx.params.fqdn,
        ctx.domain_controller
    )
    ctx.checks.extend(results)
    ctx.ui.show_checklist([result.as_row() for result in results])

    problems = [result for result in results if result.status in (WARN, FAIL)]
    if problems:
        ctx.ui.print_warning(f"{len(problems)} check(s) need attention; see the migration report")
    else:
        ctx.ui.print_success("Comprehensive verification completed")
    return True
