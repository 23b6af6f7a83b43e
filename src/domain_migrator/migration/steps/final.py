"""
Final Step

List the backups, print next steps and offer a reboot.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


def final_step(ctx: "MigrationContext") -> bool:
    """Show where the backups are and request a reboot if the operator wants one."""
    ui = ctx.ui
    params = ctx.params

    ui.print_info("Configuration backups:")
    for label, path in ctx.settings.tracked_files.items():
        latest = ctx.backups.latest_backup(path)
        ui.console.print(f"  {label}: {latest.backup_path if latest else 'none'}")
    snapshot = ctx.snapshot or ctx.backups.latest_snapshot()
    if snapshot:
        ui.console.print(f"  Rollback point: {snapshot.archive_path}")

    if ctx.dry_run:
        title = "Dry Run Complete"
        content = (
            f"Simulated migration to [bold]{params.domain}[/bold] as {params.fqdn}.\n"
            f"{len(ctx.runner.actions)} action(s) were recorded and none were performed."
        )
    else:
        title = "Migration Complete"
        content = f"This host is now [bold]{params.fqdn}[/bold] in domain [bold]{params.domain}[/bold]."

    next_steps = [
        "Reboot the system so every service picks up the new domain",
        f"Log in with a domain account (user@{params.domain})",
        "If something is wrong, run: sudo domain-migrate --revert",
    ]
    if ctx.report_path:
        next_steps.insert(0, f"Review the report: {ctx.report_path}")
    ui.show_completion_panel(title, content, next_steps)

    if ui.prompt_confirm("Do you want to reboot now?", default=not ctx.dry_run):
        ctx.reboot_requested = True
    else:
        ui.print_info("Please reboot the system manually to complete the migration")
    return True
