"""
Domain Migrator Command Line Interface

Main entry point for the domain-migrate CLI.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from domain_migrator.migration.config import MigrationSettings
from domain_migrator.migration.exceptions import ConfigError, MigrationError
from domain_migrator.migration.logging_config import get_log_path, get_logger, setup_logging
from domain_migrator.migration.state import MigrationMode

console = Console()

MENU_CHOICES = {
    "Technician Mode (full control, rollback point)": "technician",
    "Live Mode (standard migration)": "live",
    "Dry Run Mode (simulate, change nothing)": "dry-run",
    "Revert Migration": "revert",
    "Exit": "exit",
}


def load_settings(config_path: Optional[Path]) -> MigrationSettings:
    """Load settings or exit with a readable error."""
    try:
        return MigrationSettings.load(config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def configure_logging(settings: MigrationSettings, verbose: bool):
    setup_logging(
        level=logging.INFO if verbose else None,
        log_file=get_log_path(settings.log_dir)
    )


def require_root(action: str):
    if os.geteuid() != 0:
        console.print(f"[red]Error:[/red] {action} must be run as root (try: sudo domain-migrate ...)")
        sys.exit(1)


def build_context(mode: MigrationMode, settings: MigrationSettings, ui):
    """Wire runner, backups and UI for one run."""
    from domain_migrator.migration.backups import BackupManager
    from domain_migrator.migration.context import MigrationContext
    from domain_migrator.migration.runner import DryRunRunner, SubprocessRunner

    host = SubprocessRunner(ui=ui, timeout=settings.command_timeout_seconds)
    runner = DryRunRunner(query_runner=host, ui=ui) if mode.is_dry_run else host
    backups = BackupManager(runner, settings.rollback_dir, settings.restore_root)
    return MigrationContext(mode=mode, settings=settings, runner=runner, ui=ui, backups=backups)


def choose_mode(ui) -> str:
    """Numbered mode menu shown when no mode flag was given."""
    choice = ui.prompt_choice(
        "Select migration mode:",
        list(MENU_CHOICES),
        default="Live Mode (standard migration)"
    )
    return MENU_CHOICES[choice]


def run_migration(mode: MigrationMode, settings: MigrationSettings, ui, resume: Optional[bool]) -> int:
    from domain_migrator.migration.orchestrator import MigrationEngine

    if not mode.is_dry_run:
        require_root("A live migration")

    ui.print_header("Domain Migration", mode.label)
    if mode.is_dry_run:
        ui.print_info("Dry run: no changes will be made to this system")

    engine = MigrationEngine(build_context(mode, settings, ui))
    try:
        outcome = engine.run(resume=resume)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    return outcome.exit_code


def run_revert(settings: MigrationSettings, ui) -> int:
    from domain_migrator.migration.revert import RevertController

    require_root("Reverting a migration")
    ui.print_header("Revert Domain Migration")

    ctx = build_context(MigrationMode.LIVE, settings, ui)
    controller = RevertController(settings, ctx.runner, ui, ctx.backups)
    try:
        controller.revert()
    except KeyboardInterrupt:
        console.print("\n[yellow]Revert interrupted.[/yellow]")
        return 130
    except MigrationError as e:
        ui.show_fatal(e.message, e.remediation, e.details)
        return 1
    except Exception as e:
        get_logger(__name__).exception("Revert failed")
        ui.show_fatal(
            f"Revert failed: {escape(str(e))}",
            "Restore the files listed by 'domain-migrate backups' manually"
        )
        return 1
    return 0


@click.group(invoke_without_command=True)
@click.option("--technician", "mode", flag_value="technician", help="Full migration with rollback point")
@click.option("--live", "mode", flag_value="live", help="Standard migration")
@click.option("--dry-run", "mode", flag_value="dry-run", help="Simulate the migration without changing anything")
@click.option("--revert", "mode", flag_value="revert", help="Revert a previous migration from backups")
@click.option("--resume/--fresh", default=None, help="Resume or discard saved progress without asking")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Settings file (default: /etc/domain-migrator/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.version_option(package_name="domain-migrator")
@click.pass_context
def main(ctx, mode: Optional[str], resume: Optional[bool], config_path: Optional[Path], verbose: bool):
    """Migrate this host from one Active Directory domain to another.

    Examples:
        sudo domain-migrate --dry-run        # Simulate first
        sudo domain-migrate --live           # Migrate
        sudo domain-migrate --live --resume  # Continue an interrupted migration
        sudo domain-migrate --revert         # Undo
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is not None:
        if mode:
            raise click.UsageError(f"--{mode} cannot be combined with the '{ctx.invoked_subcommand}' command")
        return

    from domain_migrator.migration.ui import MigrationUI

    settings = load_settings(config_path)
    configure_logging(settings, verbose)
    ui = MigrationUI(console)

    if mode is None:
        ui.print_header("Domain Migration")
        mode = choose_mode(ui)
        if mode == "exit":
            sys.exit(0)

    if mode == "revert":
        sys.exit(run_revert(settings, ui))
    sys.exit(run_migration(MigrationMode(mode), settings, ui, resume))


@main.command()
@click.pass_context
def status(ctx):
    """Show saved migration progress."""
    from domain_migrator.migration.exceptions import StateError
    from domain_migrator.migration.orchestrator import build_steps
    from domain_migrator.migration.state import StateStore

    settings = load_settings(ctx.obj["config_path"])
    steps = build_steps()
    store = StateStore(settings.state_file, len(steps))

    try:
        state = store.load()
    except StateError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if state is None:
        console.print("[dim]No migration in progress.[/dim]")
        return

    table = Table(title="Migration Progress", border_style="blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Mode", state.mode.value)
    table.add_row("Domain", state.domain or "[dim]not set[/dim]")
    table.add_row("Hostname", state.hostname or "[dim]not set[/dim]")
    table.add_row("Completed", f"{state.step}/{len(steps)} steps")
    if state.step < len(steps):
        table.add_row("Next step", steps[state.step].title)
    console.print(table)


@main.command()
@click.pass_context
def backups(ctx):
    """List configuration backups and rollback points."""
    from domain_migrator.migration.backups import BackupManager, human_size
    from domain_migrator.migration.runner import SubprocessRunner

    settings = load_settings(ctx.obj["config_path"])
    manager = BackupManager(SubprocessRunner(), settings.rollback_dir, settings.restore_root)

    table = Table(title="Configuration Backups", border_style="blue")
    table.add_column("File", style="cyan")
    table.add_column("Backup", style="white")
    table.add_column("Size", justify="right")
    found = False
    for label, path in settings.tracked_files.items():
        for record in reversed(manager.find_backups(path)):
            table.add_row(label, str(record.backup_path), human_size(record.size_bytes))
            found = True
    if found:
        console.print(table)
    else:
        console.print("[dim]No configuration backups found.[/dim]")

    snapshots = manager.list_snapshots()
    if not snapshots:
        console.print("[dim]No rollback points found.[/dim]")
        return

    table = Table(title="Rollback Points", border_style="blue")
    table.add_column("Archive", style="cyan")
    table.add_column("Created")
    table.add_column("Domain")
    table.add_column("Size", justify="right")
    for snapshot in reversed(snapshots):
        table.add_row(snapshot.archive_path.name, snapshot.created_at, snapshot.domain, human_size(snapshot.size_bytes))
    console.print(table)


@main.command()
@click.option("--domain", help="Domain to verify (default: from saved progress or realm list)")
@click.pass_context
def verify(ctx, domain: Optional[str]):
    """Check the health of the current domain membership."""
    from domain_migrator.migration.discovery import list_joined_domains
    from domain_migrator.migration.exceptions import StateError
    from domain_migrator.migration.orchestrator import build_steps
    from domain_migrator.migration.runner import SubprocessRunner
    from domain_migrator.migration.state import StateStore
    from domain_migrator.migration.steps.verification import FAIL, verify_migration
    from domain_migrator.migration.ui import MigrationUI

    settings = load_settings(ctx.obj["config_path"])
    runner = SubprocessRunner(timeout=settings.command_timeout_seconds)
    ui = MigrationUI(console)

    fqdn = ""
    if not domain:
        try:
            state = StateStore(settings.state_file, len(build_steps())).load()
        except StateError:
            state = None
        if state and state.domain:
            domain = state.domain
            fqdn = f"{state.hostname}.{state.domain}" if state.hostname else ""
        else:
            joined = list_joined_domains(runner)
            domain = joined[0] if joined else None

    if not domain:
        console.print("[red]Error:[/red] No domain to verify. Pass --domain.")
        sys.exit(1)

    ui.print_header("Domain Verification", domain)
    results = verify_migration(runner, settings, domain, fqdn)
    ui.show_checklist([result.as_row() for result in results])
    sys.exit(1 if any(result.status == FAIL for result in results) else 0)


if __name__ == "__main__":
    main()
