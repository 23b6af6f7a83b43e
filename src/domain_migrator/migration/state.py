"""
Migration State Persistence

The state file records the last completed step so an interrupted migration
can resume. Format (one line):

    STEP=<int>|MODE=<technician|live|dry-run>|DOMAIN=<domain>|HOSTNAME=<host>
"""

import fcntl
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, Optional

from domain_migrator.migration.exceptions import StateError
from domain_migrator.migration.logging_config import get_logger


logger = get_logger(__name__)

STATE_KEYS = ("STEP", "MODE", "DOMAIN", "HOSTNAME")


class MigrationMode(str, Enum):
    """How mutating operations are treated."""
    TECHNICIAN = "technician"
    LIVE = "live"
    DRY_RUN = "dry-run"

    @property
    def is_dry_run(self) -> bool:
        return self is MigrationMode.DRY_RUN

    @property
    def label(self) -> str:
        return {
            MigrationMode.TECHNICIAN: "Technician Mode",
            MigrationMode.LIVE: "Live Mode",
            MigrationMode.DRY_RUN: "Dry Run Mode",
        }[self]


@dataclass
class MigrationState:
    """Progress of one migration attempt."""
    step: int = 0
    mode: MigrationMode = MigrationMode.LIVE
    domain: str = ""
    hostname: str = ""

    def encode(self) -> str:
        for value in (self.domain, self.hostname):
            if "|" in value or "\n" in value:
                raise StateError(f"Value cannot be stored in the state file: {value!r}")
        return (
            f"STEP={self.step}|MODE={self.mode.value}"
            f"|DOMAIN={self.domain}|HOSTNAME={self.hostname}"
        )

    @classmethod
    def decode(cls, text: str, total_steps: int) -> "MigrationState":
        """Parse a state line, rejecting anything that is not fully valid.

        Raises:
            StateError: If a field is missing, unknown or out of range
        """
        line = text.strip()
        if not line or "\n" in line:
            raise StateError("State file must contain exactly one line")

        fields: Dict[str, str] = {}
        for part in line.split("|"):
            key, sep, value = part.partition("=")
            if not sep or key not in STATE_KEYS or key in fields:
                raise StateError(f"Unexpected state field: {part!r}")
            fields[key] = value

        missing = [key for key in STATE_KEYS if key not in fields]
        if missing:
            raise StateError(f"State file is missing: {', '.join(missing)}")

        try:
            step = int(fields["STEP"])
        except ValueError:
            raise StateError(f"STEP is not a number: {fields['STEP']!r}")
        if not 0 <= step <= total_steps:
            raise StateError(f"STEP {step} is outside 0..{total_steps}")

        try:
            mode = MigrationMode(fields["MODE"])
        except ValueError:
            raise StateError(f"Unknown MODE: {fields['MODE']!r}")

        return cls(step=step, mode=mode, domain=fields["DOMAIN"], hostname=fields["HOSTNAME"])


class StateStore:
    """Reads and writes the state file."""

    def __init__(self, path: Path, total_steps: int):
        self.path = Path(path)
        self.total_steps = total_steps

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[MigrationState]:
        """Return the persisted state, or None when there is none.

        Raises:
            StateError: If the file exists but is malformed
        """
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text()
        except OSError as e:
            raise StateError(f"Cannot read state file {self.path}", state_file=str(self.path), details=str(e))

        try:
            return MigrationState.decode(text, self.total_steps)
        except StateError as e:
            e.state_file = str(self.path)
            raise

    def save(self, state: MigrationState):
        """Write the state atomically."""
        content = state.encode() + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Saved state %s", content.strip())

    def clear(self):
        if self.path.exists():
            self.path.unlink()
            logger.info("Cleared state file %s", self.path)

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold an exclusive advisory lock for the duration of a run.

        Raises:
            StateError: If another migration holds the lock
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_WRONLY | os.O_NOFOLLOW, 0o600)
        except OSError as e:
            raise StateError(
                f"Cannot open lock file {self.lock_path}: {e.strerror}",
                state_file=str(self.path),
                remediation=f"Remove {self.lock_path} if it is a symlink or not a regular file, then retry"
            )
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise StateError(
                "Another migration is already running on this host",
                state_file=str(self.path),
                remediation="Wait for the other run to finish; do not remove the lock while it is running"
            )

        # The lock file stays after release
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)
