"""
Backup Manager

Timestamped per-file backups of configuration files and full rollback
snapshots (gzip tarballs with a sibling .info file).
"""

import glob
import re
import tarfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from domain_migrator.migration.exceptions import BackupVerificationError, SnapshotError
from domain_migrator.migration.logging_config import get_logger
from domain_migrator.migration.runner import CommandRunner


logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
TIMESTAMP_PATTERN = re.compile(r"^\d{8}_\d{6}$")
BACKUP_INFIX = ".backup."
SNAPSHOT_PREFIX = "rollback-"
SNAPSHOT_SUFFIX = ".tar.gz"


def make_timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def human_size(size_bytes: int) -> str:
    """Format a byte count the way `du -h` does."""
    size = float(size_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


@dataclass
class BackupRecord:
    """A copy of one configuration file taken before it was changed."""
    original_path: Path
    backup_path: Path
    timestamp: str
    size_bytes: int


@dataclass
class SnapshotRecord:
    """A full rollback point."""
    archive_path: Path
    info_path: Path
    created_at: str
    mode: str = ""
    domain: str = ""
    hostname: str = ""
    size_bytes: int = 0


def verify_backup(record: BackupRecord) -> bool:
    """A backup is valid iff it exists, is readable and is non-empty."""
    path = record.backup_path
    try:
        if not path.is_file() or path.stat().st_size == 0:
            return False
        with open(path, "rb") as handle:
            handle.read(1)
    except OSError:
        return False
    return True


def parse_info_file(info_path: Path) -> Dict[str, str]:
    """Read the `Key: value` lines of a snapshot .info file."""
    values: Dict[str, str] = {}
    try:
        text = info_path.read_text()
    except OSError:
        return values
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep:
            values[key.strip()] = value.strip()
    return values


class BackupManager:
    """Creates, lists and restores backups.

    All writes go through the runner so dry-run mode reports them instead.
    """

    def __init__(self, runner: CommandRunner, rollback_dir: Path, restore_root: Path = Path("/")):
        self.runner = runner
        self.rollback_dir = Path(rollback_dir)
        self.restore_root = Path(restore_root)

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    def backup_file(self, path: Path, timestamp: Optional[str] = None) -> Optional[BackupRecord]:
        """Copy a file to `<path>.backup.<timestamp>` and verify the copy.

        Returns:
            The backup record, or None when the source does not exist

        Raises:
            BackupVerificationError: If the copy is missing or empty afterwards
        """
        path = Path(path)
        if not path.exists():
            logger.info("No %s to back up", path)
            return None

        timestamp = timestamp or make_timestamp()
        record = BackupRecord(
            original_path=path,
            backup_path=path.with_name(f"{path.name}{BACKUP_INFIX}{timestamp}"),
            timestamp=timestamp,
            size_bytes=path.stat().st_size,
        )

        self.runner.copy_file(path, record.backup_path)
        if self.dry_run:
            return record

        if not verify_backup(record):
            raise BackupVerificationError(
                f"Backup verification failed for {path}",
                backup_path=str(record.backup_path),
            )
        record.size_bytes = record.backup_path.stat().st_size
        logger.info("Backed up %s to %s (%d bytes)", path, record.backup_path, record.size_bytes)
        return record

    def verify(self, record: BackupRecord) -> bool:
        return verify_backup(record)

    def find_backups(self, path: Path) -> List[BackupRecord]:
        """All backups of a file, oldest first."""
        path = Path(path)
        if not path.parent.is_dir():
            return []

        records = []
        for candidate in path.parent.glob(f"{glob.escape(path.name)}{BACKUP_INFIX}*"):
            timestamp = candidate.name[len(path.name) + len(BACKUP_INFIX):]
            if not TIMESTAMP_PATTERN.match(timestamp) or not candidate.is_file():
                continue
            records.append(BackupRecord(
                original_path=path,
                backup_path=candidate,
                timestamp=timestamp,
                size_bytes=candidate.stat().st_size,
            ))
        return sorted(records, key=lambda r: r.timestamp)

    def latest_backup(self, path: Path) -> Optional[BackupRecord]:
        """The backup with the greatest timestamp, if any."""
        records = self.find_backups(path)
        return records[-1] if records else None

    def restore_file(self, record: BackupRecord):
        """Copy a backup over its original file."""
        if not self.dry_run and not verify_backup(record):
            raise BackupVerificationError(
                f"Backup {record.backup_path} is missing or empty",
                backup_path=str(record.backup_path),
                remediation="Pick another backup with 'domain-migrate backups'"
            )
        self.runner.copy_file(record.backup_path, record.original_path)

    def create_snapshot(
        self,
        paths: Sequence[str],
        mode: str,
        domain: str,
        hostname: str,
        timestamp: Optional[str] = None
    ) -> SnapshotRecord:
        """Archive the given paths (globs allowed, missing ones skipped).

        Raises:
            SnapshotError: If the archive cannot be written or is empty
        """
        timestamp = timestamp or make_timestamp()
        archive = self.rollback_dir / f"{SNAPSHOT_PREFIX}{timestamp}{SNAPSHOT_SUFFIX}"
        info = archive.with_name(f"{SNAPSHOT_PREFIX}{timestamp}.info")
        created_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        record = SnapshotRecord(archive, info, created_at, mode, domain, hostname)

        members = self._expand(paths)
        if self.dry_run:
            self.runner.record(
                "snapshot",
                f"create rollback point {archive} ({len(members)} paths)",
                str(archive)
            )
            return record

        try:
            self.rollback_dir.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive, "w:gz") as tar:
                for member in members:
                    try:
                        tar.add(member, arcname=member.lstrip("/"))
                    except OSError as e:
                        logger.warning("Skipping %s in rollback point: %s", member, e)
        except (OSError, tarfile.TarError) as e:
            raise SnapshotError(f"Failed to create rollback point {archive}", details=str(e))

        record.size_bytes = archive.stat().st_size if archive.exists() else 0
        if record.size_bytes == 0:
            raise SnapshotError(f"Rollback point {archive} is empty", archive_path=str(archive))

        self.runner.write_file(info, self._info_text(record))
        logger.info("Created rollback point %s (%s)", archive, human_size(record.size_bytes))
        return record

    def _expand(self, paths: Sequence[str]) -> List[str]:
        members = []
        for pattern in paths:
            matches = sorted(glob.glob(pattern)) if glob.has_magic(pattern) else [pattern]
            for match in matches:
                if Path(match).exists():
                    members.append(match)
                else:
                    logger.debug("Rollback point skips missing %s", match)
        return members

    def _info_text(self, record: SnapshotRecord) -> str:
        return (
            f"Rollback Point: {record.archive_path.name}\n"
            f"Created: {record.created_at}\n"
            f"Mode: {record.mode}\n"
            f"Domain: {record.domain}\n"
            f"Hostname: {record.hostname}\n"
            f"Size: {human_size(record.size_bytes)}\n"
            f"Restore Command: sudo tar -xzf {record.archive_path} -C /\n"
        )

    def list_snapshots(self) -> List[SnapshotRecord]:
        """Rollback points, oldest first."""
        if not self.rollback_dir.is_dir():
            return []

        records = []
        for archive in sorted(self.rollback_dir.glob(f"{SNAPSHOT_PREFIX}*{SNAPSHOT_SUFFIX}")):
            stem = archive.name[:-len(SNAPSHOT_SUFFIX)]
            info_path = archive.with_name(f"{stem}.info")
            info = parse_info_file(info_path)
            records.append(SnapshotRecord(
                archive_path=archive,
                info_path=info_path,
                created_at=info.get("Created", stem[len(SNAPSHOT_PREFIX):]),
                mode=info.get("Mode", ""),
                domain=info.get("Domain", ""),
                hostname=info.get("Hostname", ""),
                size_bytes=archive.stat().st_size,
            ))
        return records

    def latest_snapshot(self) -> Optional[SnapshotRecord]:
        snapshots = self.list_snapshots()
        return snapshots[-1] if snapshots else None

    def restore_snapshot(self, record: SnapshotRecord):
        """Extract a rollback point over the restore root.

        Raises:
            SnapshotError: If the archive is missing or cannot be extracted
        """
        if self.dry_run:
            self.runner.record(
                "restore",
                f"extract {record.archive_path} over {self.restore_root}",
                str(record.archive_path)
            )
            return

        if not record.archive_path.is_file():
            raise SnapshotError(f"Rollback point not found: {record.archive_path}")

        try:
            with tarfile.open(record.archive_path, "r:gz") as tar:
                try:
                    tar.extractall(self.restore_root, filter="tar")
                except TypeError:
                    # Interpreter without extraction filters
                    tar.extractall(self.restore_root)
        except (OSError, tarfile.TarError) as e:
            raise SnapshotError(
                f"Failed to restore rollback point {record.archive_path.name}",
                archive_path=str(record.archive_path),
                details=str(e)
            )
        logger.info("Restored rollback point %s over %s", record.archive_path, self.restore_root)
