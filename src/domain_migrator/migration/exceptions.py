"""
Domain Migration Exceptions

Custom exception types for fatal migration errors and remediation suggestions.
"""

from typing import Optional, List, Sequence


REVERT_HINT = "Consider reverting with: sudo domain-migrate --revert"


class MigrationError(Exception):
    """Base exception for all domain migration errors."""

    def __init__(
        self,
        message: str,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            remediation: Suggested fix for the operator
            details: Technical details for debugging (command output, paths)
        """
        super().__init__(message)
        self.message = message
        self.remediation = remediation
        self.details = details

    def __str__(self) -> str:
        parts = [self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.remediation:
            parts.append(f"To fix: {self.remediation}")
        return "\n".join(parts)


class ConfigError(MigrationError):
    """Settings file errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.config_key = config_key
        if not remediation and config_key:
            remediation = f"Check the '{config_key}' entry in your domain-migrator config.yaml"
        super().__init__(message, remediation, details)


class BackupVerificationError(MigrationError):
    """A backup that was just written is missing or empty."""

    def __init__(
        self,
        message: str,
        backup_path: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.backup_path = backup_path
        if not remediation:
            remediation = (
                "Check free disk space and permissions on the backup location, "
                "then resume the migration"
            )
        super().__init__(message, remediation, details)


class ExternalOperationError(MigrationError):
    """An external system command failed."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        output: Optional[str] = None,
        causes: Optional[List[str]] = None,
        remediation: Optional[str] = None,
    ):
        self.command = list(command) if command else []
        self.returncode = returncode
        self.output = output or ""
        self.causes = causes or []
        details = None
        if self.command:
            details = f"'{' '.join(self.command)}' exited with {returncode}"
            if self.output:
                details += f": {self.output.strip()[:500]}"
        if not remediation:
            remediation = REVERT_HINT
        super().__init__(message, remediation, details)


class SnapshotError(MigrationError):
    """Rollback point creation or extraction failed."""

    def __init__(
        self,
        message: str,
        archive_path: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.archive_path = archive_path
        if not remediation and archive_path:
            remediation = f"Restore manually with: sudo tar -xzf {archive_path} -C /"
        super().__init__(message, remediation, details)


class StateError(MigrationError):
    """Persisted migration state is unusable (malformed, locked, incomplete)."""

    def __init__(
        self,
        message: str,
        state_file: Optional[str] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.state_file = state_file
        if not remediation and state_file:
            remediation = f"Remove {state_file} and start a fresh migration"
        super().__init__(message, remediation, details)


class NoBackupsFoundError(MigrationError):
    """Revert was requested but nothing exists to restore."""

    def __init__(
        self,
        message: str = "No backup files found. Cannot revert migration.",
        searched: Optional[List[str]] = None,
        remediation: Optional[str] = None,
        details: Optional[str] = None
    ):
        self.searched = searched or []
        if not details and self.searched:
            details = "Searched: " + ", ".join(self.searched)
        if not remediation:
            remediation = "Restore the previous configuration manually or re-run the migration"
        super().__init__(message, remediation, details)


class MigrationCancelled(MigrationError):
    """The operator declined to continue. Not a failure."""

    def __init__(self, message: str = "Migration cancelled by operator"):
        super().__init__(message)
