"""
Domain Transition Steps

Find domain controllers, leave the old domain, discover and join the new one.
"""

from typing import TYPE_CHECKING

from domain_migrator.migration.discovery import list_joined_domains
from domain_migrator.migration.exceptions import ExternalOperationError
from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)

DISCOVER_CAUSES = [
    "Network connectivity issues",
    "DNS resolution problems",
    "Domain controller not accessible",
    "Firewall blocking required ports",
]

JOIN_CAUSES = [
    "Invalid credentials",
    "Insufficient permissions",
    "Domain policy restrictions",
    "Network connectivity issues",
    "DNS resolution problems",
    "Firewall blocking required ports",
]


def _print_causes(ctx: "MigrationContext", causes):
    ctx.ui.print_info("This could be due to:")
    for cause in causes:
        ctx.ui.console.print(f"  - {cause}")


def dc_discovery_step(ctx: "MigrationContext") -> bool:
    """Locate domain controllers for the new domain."""
    ui = ctx.ui
    ctx.discovery = None
    selected = ctx.ensure_domain_controller()
    discovery = ctx.discovery

    if discovery.is_fallback:
        ui.print_warning(f"No domain controllers found; using default {selected}")
    else:
        ui.print_success(f"Found via {discovery.source}: {', '.join(discovery.controllers)}")
        ui.print_info(f"Selected domain controller: {selected}")
    return True


def domain_leave_step(ctx: "MigrationContext") -> bool:
    """Leave the currently joined domain(s). Failure only warns."""
    ui = ctx.ui
    ctx.current_domains = list_joined_domains(ctx.runner)
    if not ctx.current_domains:
        ui.print_success("No domain currently joined. Proceeding to join new domain.")
        return True

    admin = ctx.ensure_old_admin()
    for domain in ctx.current_domains:
        ui.print_info(f"Leaving domain {domain} using account: {admin}")
        result = ctx.runner.run(
            ["realm", "leave", f"--user={admin}", domain],
            input_text=f"{ctx.params.old_credential}\n" if ctx.params.old_credential else None,
            status=f"Leaving {domain}..."
        )
        if result.ok:
            if not result.dry_run:
                ui.print_success(f"Left domain {domain}")
        else:
            logger.warning("realm leave %s failed with %s", domain, result.returncode)
            ui.print_warning(f"Could not leave domain {domain}. Continuing anyway...")

    ctx.params.old_credential = ""
    return True


def domain_discover_step(ctx: "MigrationContext") -> bool:
    """Confirm the new domain can be discovered. Failure is fatal."""
    domain = ctx.params.domain
    if ctx.dry_run:
        ctx.runner.record("query", f"discover domain {domain}")
        return True

    if not ctx.runner.which("realm"):
        raise ExternalOperationError(
            "realm command not found - SSSD may not be installed",
            remediation="Install realmd and resume the migration"
        )

    result = ctx.runner.query(["realm", "discover", domain])
    if not result.ok:
        _print_causes(ctx, DISCOVER_CAUSES)
        raise ExternalOperationError(
            f"Failed to discover domain {domain}",
            command=result.command,
            returncode=result.returncode,
            output=result.output,
            causes=DISCOVER_CAUSES
        )

    ctx.ui.print_success("Domain discovery completed successfully")
    return True


def domain_join_step(ctx: "MigrationContext") -> bool:
    """Join the new domain, retrying once with an explicit computer OU."""
    ui = ctx.ui
    params = ctx.params
    ui.print_info(f"Attempting to join domain {params.domain} using account: {params.admin_user}")

    stdin = f"{params.credential}\n" if params.credential else None
    try:
        command = ["realm", "join", f"--user={params.admin_user}", params.domain]
        result = ctx.runner.run(command, input_text=stdin, status=f"Joining {params.domain}...")

        if not result.ok:
            ou = ctx.settings.computer_ou
            ui.print_warning(f"Join failed; retrying with computer OU '{ou}'")
            command = ["realm", "join", f"--user={params.admin_user}", f"--computer-ou={ou}", params.domain]
            result = ctx.runner.run(command, input_text=stdin, status=f"Joining {params.domain}...")
    finally:
        params.credential = ""

    if not result.ok:
        _print_causes(ctx, JOIN_CAUSES)
        raise ExternalOperationError(
            f"Failed to join domain {params.domain}",
            command=result.command,
            returncode=result.returncode,
            output=result.output,
            causes=JOIN_CAUSES
        )

    if not result.dry_run:
        ui.print_success(f"Joined domain {params.domain}")
    return True
