"""
Domain Migrator: move a Linux host from one Active Directory domain to another

Resumable, backed-up domain migration for realmd/SSSD hosts.
"""

try:
    from importlib.metadata import version
    __version__ = version("domain-migrator")
except Exception:
    __version__ = "0.0.0"  # Fallback for development

__all__ = ["__version__"]
