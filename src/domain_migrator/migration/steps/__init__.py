"""
Domain Migration Steps

Individual step handlers for the migration engine.
"""

from domain_migrator.migration.state import MigrationMode
from domain_migrator.migration.steps.system import packages_step, safety_account_step
from domain_migrator.migration.steps.assessment import preflight_step, domain_status_step, parameters_step
from domain_migrator.migration.steps.backup import rollback_point_step, config_backup_step
from domain_migrator.migration.steps.domain import (
    dc_discovery_step, domain_leave_step, domain_discover_step, domain_join_step
)
from domain_migrator.migration.steps.host import hostname_step, network_step
from domain_migrator.migration.steps.authentication import authentication_step, sssd_restart_step
from domain_migrator.migration.steps.verification import join_verification_step, post_verification_step
from domain_migrator.migration.steps.report import report_step
from domain_migrator.migration.steps.profiles import user_profiles_step
from domain_migrator.migration.steps.sudo import sudo_access_step
from domain_migrator.migration.steps.final import final_step

# Step definitions for the migration engine, in execution order
MIGRATION_STEPS = [
    {
        "name": "packages",
        "title": "Package Installation",
        "description": "Install realmd, SSSD, Kerberos and supporting packages",
        "handler": packages_step,
    },
    {
        "name": "safety_account",
        "title": "Safety Account",
        "description": "Create a local emergency account with sudo access",
        "handler": safety_account_step,
    },
    {
        "name": "preflight",
        "title": "Pre-Migration Checks",
        "description": "Check connectivity, DNS, disk, time sync, sessions and services",
        "handler": preflight_step,
        "mutating": False,
    },
    {
        "name": "domain_status",
        "title": "Current Domain Status",
        "description": "Show which domains this system is joined to",
        "handler": domain_status_step,
        "mutating": False,
    },
    {
        "name": "parameters",
        "title": "Migration Parameters",
        "description": "New domain, hostname and admin account",
        "handler": parameters_step,
        "mutating": False,
    },
    {
        "name": "rollback_point",
        "title": "Rollback Point",
        "description": "Archive system configuration for complete restoration",
        "handler": rollback_point_step,
        "requires": ("domain", "hostname"),
        "modes": frozenset({MigrationMode.TECHNICIAN}),
    },
    {
        "name": "config_backup",
        "title": "Configuration Backup",
        "description": "Back up hosts, Kerberos and SSSD configuration",
        "handler": config_backup_step,
    },
    {
        "name": "dc_discovery",
        "title": "Domain Controller Discovery",
        "description": "Locate domain controllers for the new domain",
        "handler": dc_discovery_step,
        "mutating": False,
        "requires": ("domain",),
    },
    {
        "name": "domain_leave",
        "title": "Leave Current Domain",
        "description": "Remove this computer from the old domain",
        "handler": domain_leave_step,
    },
    {
        "name": "domain_discover",
        "title": "Domain Discovery",
        "description": "Confirm the new domain is reachable",
        "handler": domain_discover_step,
        "mutating": False,
        "requires": ("domain",),
    },
    {
        "name": "domain_join",
        "title": "Join New Domain",
        "description": "Create the computer account and configure SSSD",
        "handler": domain_join_step,
        "requires": ("domain", "admin", "credential"),
    },
    {
        "name": "hostname",
        "title": "Hostname",
        "description": "Set the fully qualified hostname",
        "handler": hostname_step,
        "requires": ("domain", "hostname"),
    },
    {
        "name": "network",
        "title": "Network Configuration",
        "description": "Check domain DNS and update /etc/hosts",
        "handler": network_step,
        "requires": ("domain", "hostname"),
    },
    {
        "name": "authentication",
        "title": "Authentication Services",
        "description": "Configure Kerberos, NSS and PAM",
        "handler": authentication_step,
        "requires": ("domain",),
    },
    {
        "name": "sssd_restart",
        "title": "Restart SSSD",
        "description": "Restart SSSD to load the new configuration",
        "handler": sssd_restart_step,
    },
    {
        "name": "join_verification",
        "title": "Join Verification",
        "description": "Confirm membership of the new domain",
        "handler": join_verification_step,
        "mutating": False,
        "requires": ("domain",),
    },
    {
        "name": "post_verification",
        "title": "Post-Migration Verification",
        "description": "Health checks for users, Kerberos, services and files",
        "handler": post_verification_step,
        "mutating": False,
        "requires": ("domain", "hostname"),
    },
    {
        "name": "report",
        "title": "Migration Report",
        "description": "Write the migration report",
        "handler": report_step,
        "mutating": False,
        "requires": ("domain", "hostname"),
    },
    {
        "name": "user_profiles",
        "title": "User Profiles",
        "description": "Move old-domain home directories to the new domain",
        "handler": user_profiles_step,
        "requires": ("domain",),
    },
    {
        "name": "sudo_access",
        "title": "Sudo Access",
        "description": "Allow domain groups to use sudo",
        "handler": sudo_access_step,
        "requires": ("domain",),
    },
    {
        "name": "final",
        "title": "Finish",
        "description": "Backups, next steps and reboot",
        "handler": final_step,
        "mutating": False,
    },
]

__all__ = [
    "MIGRATION_STEPS",
    "packages_step",
    "safety_account_step",
    "preflight_step",
    "domain_status_step",
    "parameters_step",
    "rollback_point_step",
    "config_backup_step",
    "dc_discovery_step",
    "domain_leave_step",
    "domain_discover_step",
    "domain_join_step",
    "hostname_step",
    "network_step",
    "authentication_step",
    "sssd_restart_step",
    "join_verification_step",
    "post_verification_step",
    "report_step",
    "user_profiles_step",
    "sudo_access_step",
    "final_step",
]
