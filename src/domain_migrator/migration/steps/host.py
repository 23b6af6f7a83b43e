"""
Host Identity Steps

Set the fully qualified hostname and rewrite /etc/hosts to match it.
"""

from typing import List, Optional, TYPE_CHECKING

from domain_migrator.migration.discovery import primary_ip_address
from domain_migrator.migration.exceptions import ExternalOperationError, MigrationError

if TYPE_CHECKING:
    from domain_migrator.migration.context import MigrationContext


LOOPBACK_HOST_IP = "127.0.1.1"


def hosts_entry(ip: str, *names: str) -> str:
    return f"{ip}       {' '.join(names)}"


def render_hosts(existing: str, fqdn: str, short_name: str, ip: Optional[str] = None) -> str:
    """Rebuild a hosts file around the new host identity.

    Lines for 127.0.1.1 and lines naming the FQDN or short name are dropped;
    localhost, the 127.0.1.1 entry and the primary address entry are added.
    """
    kept: List[str] = []
    has_localhost = False
    for line in existing.splitlines():
        tokens = line.split("#", 1)[0].split()
        if tokens:
            if tokens[0] == LOOPBACK_HOST_IP or fqdn in tokens[1:] or short_name in tokens[1:]:
                continue
            if tokens[0] == "127.0.0.1" and "localhost" in tokens[1:]:
                has_localhost = True
        kept.append(line)

    if not has_localhost:
        kept.append(hosts_entry("127.0.0.1", "localhost"))
    kept.append(hosts_entry(LOOPBACK_HOST_IP, fqdn, short_name))
    if ip and ip != LOOPBACK_HOST_IP:
        kept.append(hosts_entry(ip, fqdn, short_name))
    return "\n".join(kept) + "\n"


def validate_hosts(content: str, fqdn: str) -> bool:
    return "localhost" in content and fqdn in content


def hostname_step(ctx: "MigrationContext") -> bool:
    """Set the system hostname to the new FQDN."""
    ui = ctx.ui
    fqdn = ctx.params.fqdn
    ui.print_info(f"Setting hostname to: {fqdn}")

    result = ctx.runner.run(["hostnamectl", "set-hostname", fqdn])
    if not result.ok:
        raise ExternalOperationError(
            f"Failed to set hostname to {fqdn}",
            command=result.command,
            returncode=result.returncode,
            output=result.output
        )
    if result.dry_run:
        return True

    current = ctx.runner.query(["hostname"]).stdout.strip()
    if current == fqdn:
        ui.print_success(f"Hostname updated to {fqdn}")
    else:
        ui.print_warning(f"Hostname may not have been set correctly (current: {current}, expected: {fqdn})")
    return True


def _check_domain_dns(ctx: "MigrationContext"):
    ui = ctx.ui
    domain = ctx.params.domain
    try:
        nameservers = [
            line.split()[1] for line in ctx.settings.resolv_conf.read_text().splitlines()
            if line.startswith("nameserver") and len(line.split()) > 1
        ]
    except OSError:
        nameservers = []
    ui.print_info(f"Current DNS servers: {', '.join(nameservers) or 'none configured'}")

    if ctx.runner.query(["nslookup", domain]).ok:
        ui.print_success(f"DNS resolution for {domain}: OK")
        return

    ui.print_warning(f"DNS resolution for {domain}: FAILED")
    ui.print_info(f"Consider adding the domain DNS servers to {ctx.settings.resolv_conf}")
    result = ctx.runner.query(["dig", "+short", "NS", domain])
    if result.ok and result.lines():
        ui.print_info(f"Found domain nameserver: {result.lines()[0]}")


def network_step(ctx: "MigrationContext") -> bool:
    """Check domain DNS and point /etc/hosts at the new name."""
    ui = ctx.ui
    params = ctx.params
    hosts_file = ctx.settings.hosts_file

    _check_domain_dns(ctx)

    ip = primary_ip_address(ctx.runner)
    ui.print_info(f"Current IP address: {ip or 'unknown'}")

    try:
        existing = hosts_file.read_text()
    except OSError:
        existing = ""
    content = render_hosts(existing, params.fqdn, params.hostname, ip)

    if not validate_hosts(content, params.fqdn):
        raise MigrationError(
            f"Generated {hosts_file} appears invalid; it was not written",
            details=content
        )

    ctx.runner.write_file(hosts_file, content)
    if not ctx.dry_run:
        ui.print_success(f"{hosts_file} updated successfully")
    return True
