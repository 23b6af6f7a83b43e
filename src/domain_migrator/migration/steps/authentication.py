"""
Authentication Steps

Kerberos, NSS and PAM configuration for the new realm, then an SSSD restart
so the new settings take effect.
"""

import re
from typing import TYPE_CHECKING

from domain_migrator.migration.exceptions import ExternalOperationError, MigrationError
from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)

NSS_DATABASES = ("passwd", "group", "shadow")
NSS_SOURCES = "compat sss"

KRB5_TEMPLATE = """[libdefaults]
    default_realm = {realm}
    dns_lookup_realm = false
    dns_lookup_kdc = true
    ticket_lifetime = 24h
    renew_lifetime = 7d
    forwardable = true
    rdns = false

[realms]
    {realm} = {{
        kdc = {kdc}
        admin_server = {kdc}
    }}

[domain_realm]
    .{domain} = {realm}
    {domain} = {realm}
"""


def render_krb5_conf(domain: str, kdc: str) -> str:
    return KRB5_TEMPLATE.format(realm=domain.upper(), domain=domain, kdc=kdc)


def render_nsswitch(existing: str) -> str:
    """Point the passwd, group and shadow databases at SSSD."""
    content = existing
    for database in NSS_DATABASES:
        entry = f"{database}:".ljust(16) + NSS_SOURCES
        pattern = re.compile(rf"^{database}:.*$", re.MULTILINE)
        if pattern.search(content):
            content = pattern.sub(entry, content)
        else:
            content = content.rstrip("\n") + f"\n{entry}\n"
    return content


def authentication_step(ctx: "MigrationContext") -> bool:
    """Clear the SSSD cache and configure Kerberos, NSS and PAM."""
    ui = ctx.ui
    runner = ctx.runner
    settings = ctx.settings
    domain = ctx.params.domain

    if not runner.run(["sssctl", "cache-remove", "--override", "--stop", "--start"]).ok:
        ui.print_warning("Could not clear SSSD cache (this is normal if no cache exists)")

    kdc = ctx.ensure_domain_controller()
    krb5 = render_krb5_conf(domain, kdc)
    if not krb5.strip():
        raise MigrationError("Generated krb5.conf is empty; it was not written")
    runner.write_file(settings.krb5_conf, krb5)
    logger.info("krb5.conf rendered for realm %s with KDC %s", domain.upper(), kdc)
    if not ctx.dry_run:
        ui.print_success(f"Kerberos configured for realm {domain.upper()} (KDC: {kdc})")

    if runner.which("pam-auth-update"):
        result = runner.run(["pam-auth-update", "--enable", "mkhomedir", "--force"])
        if not result.ok:
            ui.print_warning("pam-auth-update failed - PAM configuration may need manual setup")
    else:
        ui.print_warning("pam-auth-update not found - PAM configuration may need manual setup")

    nsswitch = settings.nsswitch_conf
    if not nsswitch.exists():
        if ctx.dry_run:
            ui.print_warning(f"{nsswitch} not found - NSS configuration would fail")
            return True
        raise MigrationError(
            f"{nsswitch} not found - NSS configuration failed",
            remediation="Restore nsswitch.conf from the libc-bin package and resume the migration"
        )
    record = ctx.backups.backup_file(nsswitch, timestamp=ctx.run_timestamp)
    if record is not None:
        ctx.created_backups.append(record)
    runner.write_file(nsswitch, render_nsswitch(nsswitch.read_text()))

    if ctx.dry_run:
        return True

    ui.print_success("NSS configuration updated to use SSSD")
    try:
        pam_session = settings.pam_common_session.read_text()
    except OSError:
        pam_session = ""
    if "mkhomedir" in pam_session:
        ui.print_success("PAM mkhomedir configuration: OK")
    else:
        ui.print_warning("PAM mkhomedir not found - home directories may not be created automatically")
    return True


def _sssd_active(ctx: "MigrationContext") -> bool:
    return ctx.runner.query(["systemctl", "is-active", "--quiet", "sssd"]).ok


def sssd_restart_step(ctx: "MigrationContext") -> bool:
    """Restart (or start) SSSD; it must be active afterwards."""
    ui = ctx.ui
    if ctx.dry_run:
        ctx.runner.run(["systemctl", "restart", "sssd"])
        return True

    if _sssd_active(ctx):
        result = ctx.runner.run(["systemctl", "restart", "sssd"])
    else:
        ui.print_warning("SSSD service is not running. Starting it...")
        result = ctx.runner.run(["systemctl", "start", "sssd"])
    if not result.ok:
        ui.print_error(f"Failed to {result.command[1]} SSSD service")

    with ui.status("Waiting for SSSD service to fully initialize..."):
        ctx.sleep(ctx.settings.service_settle_seconds)

    if not _sssd_active(ctx):
        status = ctx.runner.query(["systemctl", "status", "sssd"])
        raise ExternalOperationError(
            "SSSD service failed to start properly",
            command=status.command,
            returncode=status.returncode,
            output=status.output
        )

    ui.print_success("SSSD service is running properly")
    return True
