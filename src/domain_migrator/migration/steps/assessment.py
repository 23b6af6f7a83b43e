"""
Assessment Steps

Readiness checks, current domain membership and collection of the
migration parameters.
"""

from typing import TYPE_CHECKING

from domain_migrator.migration.discovery import list_joined_domains
from domain_migrator.migration.exceptions import MigrationCancelled
from domain_migrator.migration.preflight import run_preflight_checks

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


def preflight_step(ctx: "MigrationContext") -> bool:
    """Run pre-migration diagnostics. Problems are reported, never fatal."""
    ctx.ui.print_info("Checking system readiness for domain migration...")
    ctx.checks = run_preflight_checks(ctx)
    ctx.ui.show_checklist([check.as_row() for check in ctx.checks])

    warnings = [check for check in ctx.checks if check.status == "warn"]
    if warnings:
        ctx.ui.print_warning(f"{len(warnings)} check(s) need attention; continuing")
    else:
        ctx.ui.print_success("Pre-migration checks completed")
    return True


def domain_status_step(ctx: "MigrationContext") -> bool:
    """Show which domains the host is joined to now."""
    ui = ctx.ui
    ctx.current_domains = list_joined_domains(ctx.runner)
    if ctx.current_domains:
        ui.print_info(f"Current domain membership: {', '.join(ctx.current_domains)}")
    else:
        ui.print_info("Not currently joined to any domain.")

    result = ctx.runner.query(["sssctl", "domain-list"])
    if result.ok and result.lines():
        ui.print_info(f"SSSD domains: {', '.join(result.lines())}")
    else:
        ui.print_info("No SSSD domains configured")
    return True


def parameters_step(ctx: "MigrationContext") -> bool:
    """Collect and validate the new domain, hostname and admin account."""
    ui = ctx.ui
    params = ctx.params

    ui.print_info("New domain information")
    ctx.prompt_domain()
    ui.print_success(f"Domain format is valid: {params.domain}")

    ui.print_info("System hostname")
    ctx.prompt_hostname()

    ui.print_info("Domain admin credentials")
    if ctx.dry_run:
        ui.print_info("Using placeholder admin account for simulation")
    ctx.ensure_admin()
    ctx.ensure_credential()

    ui.show_summary_table("Migration Parameters", params.summary())
    if not ui.prompt_confirm("Proceed with these settings?", default=True):
        raise MigrationCancelled()
    return True
