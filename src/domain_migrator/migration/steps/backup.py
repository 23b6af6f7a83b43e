"""
Backup Steps

Rollback point (technician mode) and per-file configuration backups.
"""

from typing import TYPE_CHECKING

from domain_migrator.migration.backups import human_size

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


def rollback_point_step(ctx: "MigrationContext") -> bool:
    """Archive system configuration so the whole migration can be undone."""
    ui = ctx.ui
    if not ui.prompt_confirm("Do you want to create a rollback point?", default=True):
        ui.print_skip("Rollback point")
        return True

    with ui.status("Creating rollback point..."):
        snapshot = ctx.backups.create_snapshot(
            ctx.settings.snapshot_paths,
            mode=ctx.mode.value,
            domain=ctx.params.domain,
            hostname=ctx.params.hostname,
            timestamp=ctx.run_timestamp
        )
    ctx.snapshot = snapshot

    if not ctx.dry_run:
        ui.print_success(f"Rollback point created: {snapshot.archive_path} ({human_size(snapshot.size_bytes)})")
        ui.print_info(f"Restore with: sudo tar -xzf {snapshot.archive_path} -C /")
    return True


def config_backup_step(ctx: "MigrationContext") -> bool:
    """Back up the configuration files the migration rewrites."""
    ui = ctx.ui
    for label, path in ctx.settings.tracked_files.items():
        record = ctx.backups.backup_file(path, timestamp=ctx.run_timestamp)
        if record is None:
            ui.print_warning(f"{label} configuration {path} does not exist, skipping backup")
            continue
        ctx.created_backups.append(record)
        if not ctx.dry_run:
            ui.print_success(f"{label} backup verified: {record.backup_path}")
    return True
