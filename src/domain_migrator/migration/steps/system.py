"""
System Preparation Steps

Install the packages the migration needs and create a local emergency
account that keeps the host reachable if domain logins break.
"""

from typing import TYPE_CHECKING

from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)


def packages_step(ctx: "MigrationContext") -> bool:
    """Install domain migration packages. Failures are warnings."""
    settings = ctx.settings
    ui = ctx.ui
    pm = settings.package_manager

    result = ctx.runner.run([pm, "update", "-qq"], status="Updating package lists...")
    if not result.ok:
        ui.print_warning("Package list update failed, but continuing...")

    result = ctx.runner.run(
        [pm, "install", "-y", "-qq", *settings.packages],
        status="Installing domain migration packages..."
    )
    if not result.ok:
        ui.print_warning("Some packages failed to install, but continuing...")
    elif not result.dry_run:
        ui.print_success(f"Installed {len(settings.packages)} packages")

    if settings.upgrade_packages:
        result = ctx.runner.run([pm, "upgrade", "-y", "-qq"], status="Upgrading system packages...")
        if not result.ok:
            ui.print_warning("System upgrade failed, but continuing...")

    return True


def _prompt_safety_password(ctx: "MigrationContext", account: str) -> str:
    ui = ctx.ui
    while True:
        password = ui.prompt_password(f"Enter password for the {account} account", required=True)
        confirm = ui.prompt_password(f"Confirm password for the {account} account", required=True)
        if password == confirm:
            return password
        ui.print_error("Passwords do not match")


def safety_account_step(ctx: "MigrationContext") -> bool:
    """Create a local sudo account for emergency access during migration."""
    ui = ctx.ui
    runner = ctx.runner
    account = ctx.settings.safety_account

    if runner.query(["id", account]).ok and not ctx.dry_run:
        ui.print_warning(f"Account '{account}' already exists; using it for emergency access")
    else:
        password = "" if ctx.dry_run else _prompt_safety_password(ctx, account)

        result = runner.run(["useradd", "-m", "-s", "/bin/bash", account])
        if not result.ok:
            logger.warning("useradd %s failed: %s", account, result.stderr.strip())
            ui.print_warning(f"Could not create account '{account}': {result.stderr.strip()}")
            return True

        # The password only travels on stdin
        runner.run(["chpasswd"], input_text=f"{account}:{password}\n")
        runner.run(["usermod", "-aG", "sudo", account])
        runner.write_file(
            ctx.settings.sudoers_dir / f"{account}-user",
            f"{account} ALL=(ALL) NOPASSWD:ALL\n",
            mode=0o440
        )
        if not ctx.dry_run:
            ui.print_success(f"Account '{account}' created with sudo access")

    ui.show_completion_panel(
        "Emergency Access",
        f"If anything goes wrong, reboot and log in locally as [bold]{account}[/bold],\n"
        "then use sudo to troubleshoot or revert.",
        [],
        style="yellow"
    )
    return True
