"""
User Profile Migration Step

Move home directories of old-domain users (`/home/user@olddomain`) to their
new-domain name and leave a symlink at the old path.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Tuple, TYPE_CHECKING

from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


logger = get_logger(__name__)

MIGRATION_LOG_PREFIX = "user-migration-"


def find_domain_profiles(home_root: Path, new_domain: str, old_domains: List[str]) -> List[Tuple[Path, str, str]]:
    """Home directories named `user@domain` that belong to another domain.

    Returns:
        (path, user, domain) tuples; when old_domains is empty every
        foreign domain qualifies
    """
    if not home_root.is_dir():
        return []

    profiles = []
    for entry in sorted(home_root.iterdir()):
        if entry.is_symlink() or not entry.is_dir() or "@" not in entry.name:
            continue
        user, _, domain = entry.name.rpartition("@")
        if not user or domain == new_domain:
            continue
        if old_domains and domain not in old_domains:
            continue
        profiles.append((entry, user, domain))
    return profiles


def user_profiles_step(ctx: "MigrationContext") -> bool:
    """Offer to rename old-domain home directories for the new domain."""
    ui = ctx.ui
    runner = ctx.runner
    new_domain = ctx.params.domain

    profiles = find_domain_profiles(ctx.settings.home_root, new_domain, ctx.current_domains)
    if not profiles:
        ui.print_info("No old-domain user profiles found")
        return True

    ui.print_info(f"Found {len(profiles)} user profile(s) from the old domain:")
    for path, _, _ in profiles:
        ui.console.print(f"  • {path.name}")
    if not ui.prompt_confirm("Do you want to migrate these user profiles?", default=True):
        ui.print_skip("User profile migration")
        return True

    log_lines = []
    for old_path, user, old_domain in profiles:
        new_user = f"{user}@{new_domain}"
        new_path = old_path.with_name(new_user)
        if new_path.exists():
            ui.print_warning(f"{new_path} already exists; skipping {old_path.name}")
            continue

        runner.move_path(old_path, new_path)
        runner.symlink(new_path, old_path)
        if not runner.run(["chown", "-R", f"{new_user}:", str(new_path)]).ok:
            ui.print_warning(f"Could not change ownership of {new_path}; {new_user} may not resolve yet")

        ctx.migrated_profiles.append((old_path, new_path))
        logger.info("Migrated profile %s -> %s", old_path, new_path)
        log_lines.append(f"{datetime.now().isoformat(timespec='seconds')} {old_path} -> {new_path}")
        if not ctx.dry_run:
            ui.print_success(f"Migrated {old_path.name} to {new_user}")

    if log_lines and not ctx.dry_run:
        log_path = ctx.settings.log_dir / f"{MIGRATION_LOG_PREFIX}{ctx.run_timestamp}.log"
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text("\n".join(log_lines) + "\n")
            ui.print_info(f"Profile migration log: {log_path}")
        except OSError as e:
            ui.print_warning(f"Could not write profile migration log {log_path}: {e}")
    return True
