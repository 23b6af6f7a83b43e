"""
Domain Migration Engine

Resumable step engine for moving a host between Active Directory domains.
"""

from domain_migrator.migration.context import MigrationContext
from domain_migrator.migration.orchestrator import MigrationEngine, MigrationOutcome
from domain_migrator.migration.state import MigrationMode
from domain_migrator.migration.ui import MigrationUI

__all__ = ["MigrationContext", "MigrationEngine", "MigrationOutcome", "MigrationMode", "MigrationUI"]
