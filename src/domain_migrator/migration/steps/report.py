"""
Report Step

Write a plain-text migration report the operator can keep with the change
record.
"""

from datetime import datetime
from typing import List, TYPE_CHECKING

from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)

RULE = "=" * 77


def _section(title: str, lines: List[str]) -> List[str]:
    return ["", title, "=" * len(title)] + (lines or ["(none)"])


def render_report(ctx: "MigrationContext") -> str:
    params = ctx.params
    settings = ctx.settings

    lines = [
        RULE,
        "DOMAIN MIGRATION REPORT".center(77).rstrip(),
        RULE,
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Migration Mode: {ctx.mode.value}",
        f"Domain: {params.domain}",
        f"Hostname: {params.hostname}",
        f"FQDN: {params.fqdn}",
        f"Domain Controller: {ctx.domain_controller or 'not discovered in this run'}",
        RULE,
    ]

    lines += _section("CONFIGURATION CHANGES", [
        f"- {settings.hosts_file}: entries for {params.fqdn}",
        f"- {settings.krb5_conf}: realm {params.realm}",
        f"- {settings.nsswitch_conf}: passwd/group/shadow use SSSD",
        f"- {settings.pam_common_session}: mkhomedir enabled",
        f"- hostname set to {params.fqdn}",
    ])

    lines += _section("VERIFICATION RESULTS", [
        f"{check.name}: {check.status.upper()} - {check.message}" for check in ctx.checks
    ])

    backup_lines = [f"{record.original_path} -> {record.backup_path}" for record in ctx.created_backups]
    if ctx.snapshot:
        backup_lines.append(f"Rollback point: {ctx.snapshot.archive_path}")
    lines += _section("BACKUP INFORMATION", backup_lines)

    if ctx.dry_run:
        lines += _section("DRY-RUN ACTIONS (not performed)", [
            f"- {action.description}" for action in ctx.runner.actions
        ])

    lines += _section("ROLLBACK INSTRUCTIONS", [
        "Revert configuration files:  sudo domain-migrate --revert",
        "Restore a rollback point:    sudo tar -xzf <rollback archive> -C /",
        f"Rollback points are kept in {settings.rollback_dir}",
    ])
    return "\n".join(lines) + "\n"


def report_step(ctx: "MigrationContext") -> bool:
    """Write the migration report (in every mode)."""
    path = ctx.settings.report_dir / f"migration-report-{ctx.run_timestamp}.txt"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_report(ctx))
    except OSError as e:
        ctx.ui.print_warning(f"Could not write migration report {path}: {e}")
        return True

    ctx.report_path = path
    logger.info("Wrote migration report %s", path)
    ctx.ui.print_success(f"Migration report saved: {path}")
    return True
