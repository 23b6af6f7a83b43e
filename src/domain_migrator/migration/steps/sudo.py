"""
Sudo Access Step

Let domain groups use sudo through SSSD and a sudoers drop-in.
"""

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


DOMAIN_SECTION = re.compile(r"^\[domain/[^\]]*\][ \t]*$", re.MULTILINE)
SUDOERS_FILE = "domain-users"


def add_sudo_provider(sssd_conf: str) -> str:
    """Insert `sudo_provider = ad` after each [domain/...] header."""
    if "sudo_provider" in sssd_conf:
        return sssd_conf
    return DOMAIN_SECTION.sub(lambda m: f"{m.group(0)}\nsudo_provider = ad", sssd_conf)


def render_sudoers(domain: str, groups) -> str:
    realm = domain.upper()
    return "".join(f"%{realm}\\{group} ALL=(ALL) ALL\n" for group in groups)


def sudo_access_step(ctx: "MigrationContext") -> bool:
    """Optionally grant sudo to domain groups."""
    ui = ctx.ui
    runner = ctx.runner
    settings = ctx.settings

    if not ui.prompt_confirm("Do you want to add domain users to sudo group?", default=False):
        ui.print_skip("Sudo configuration for domain users")
        return True

    if not settings.sssd_conf.exists():
        ui.print_warning("SSSD config not found, cannot configure sudo access")
        return True

    # sssd.conf was already backed up before the join
    current = settings.sssd_conf.read_text()
    updated = add_sudo_provider(current)
    if updated != current:
        runner.write_file(settings.sssd_conf, updated)

    sudoers = settings.sudoers_dir / SUDOERS_FILE
    runner.write_file(sudoers, render_sudoers(ctx.params.domain, settings.sudo_groups), mode=0o440)

    if not ctx.dry_run and not runner.query(["visudo", "-c", "-f", str(sudoers)]).ok:
        ui.print_error("Sudoers file syntax error - removing file")
        runner.remove_file(sudoers)
        return True

    if not ctx.dry_run:
        ui.print_success("Domain users can now use sudo (after reboot)")
    return True
