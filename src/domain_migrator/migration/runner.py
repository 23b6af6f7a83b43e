"""
Command Execution

Every external command and every file mutation the migration performs goes
through a CommandRunner. SubprocessRunner executes for real; DryRunRunner
records mutating actions and only lets read-only queries through.
"""

import os
import shlex
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, TYPE_CHECKING

from domain_migrator.migration.logging_config import get_logger

if TYPE_CHECKING:
    from domain_migrator.migration.ui import MigrationUI


logger = get_logger(__name__)

# Liveness poll interval for the progress spinner
POLL_INTERVAL = 0.1


@dataclass
class CommandResult:
    """Outcome of one external command."""
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)

    def lines(self) -> List[str]:
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


@dataclass
class RecordedAction:
    """A mutation that dry-run mode reported instead of performing."""
    kind: str
    description: str
    target: Optional[str] = None


class CommandRunner:
    """Base runner: command execution is abstract, file operations are real."""

    dry_run = False

    def __init__(self, ui: Optional["MigrationUI"] = None, timeout: Optional[int] = None):
        self.ui = ui
        self.timeout = timeout
        self.actions: List[RecordedAction] = []

    def run(
        self,
        command: Sequence[str],
        mutating: bool = True,
        input_text: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CommandResult:
        raise NotImplementedError

    def query(self, command: Sequence[str], input_text: Optional[str] = None) -> CommandResult:
        """Run a read-only command."""
        return self.run(command, mutating=False, input_text=input_text)

    def which(self, name: str) -> bool:
        return shutil.which(name) is not None

    def write_file(self, path: Path, content: str, mode: Optional[int] = None):
        """Atomically replace a file's content, keeping its mode unless one is given."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        if mode is None and path.exists():
            mode = path.stat().st_mode & 0o7777

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write(content)
            if mode is not None:
                os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.info("Wrote %s", path)

    def copy_file(self, src: Path, dst: Path):
        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
        logger.info("Copied %s -> %s", src, dst)

    def move_path(self, src: Path, dst: Path):
        shutil.move(str(src), str(dst))
        logger.info("Moved %s -> %s", src, dst)

    def symlink(self, target: Path, link: Path):
        Path(link).symlink_to(target)
        logger.info("Linked %s -> %s", link, target)

    def remove_file(self, path: Path):
        path = Path(path)
        if path.exists() or path.is_symlink():
            path.unlink()
            logger.info("Removed %s", path)


class SubprocessRunner(CommandRunner):
    """Executes commands on the host."""

    def run(
        self,
        command: Sequence[str],
        mutating: bool = True,
        input_text: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CommandResult:
        cmd = [str(part) for part in command]
        logger.info("Running: %s", shlex.join(cmd))

        try:
            if status and self.ui:
                with self.ui.status(status):
                    result = self._run_polling(cmd, input_text)
            else:
                completed = subprocess.run(
                    cmd,
                    input=input_text,
                    capture_output=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=self.timeout
                )
                result = CommandResult(cmd, completed.returncode, completed.stdout or "", completed.stderr or "")
        except FileNotFoundError:
            result = CommandResult(cmd, 127, stderr=f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            result = CommandResult(cmd, 124, stderr=f"{cmd[0]}: timed out after {self.timeout}s")

        if not result.ok:
            log = logger.warning if mutating else logger.debug
            log("Command %s returned %s: %s", cmd[0], result.returncode, result.stderr.strip()[:300])
        return result

    def _run_polling(self, cmd: List[str], input_text: Optional[str]) -> CommandResult:
        """Run while the caller's spinner is shown; output is collected in temp files."""
        with tempfile.TemporaryFile("w+", encoding="utf-8", errors="replace") as out, \
                tempfile.TemporaryFile("w+", encoding="utf-8", errors="replace") as err:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
                stdout=out,
                stderr=err,
                encoding="utf-8",
                errors="replace"
            )
            if input_text is not None:
                proc.stdin.write(input_text)
                proc.stdin.close()

            started = time.monotonic()
            while proc.poll() is None:
                if self.timeout and time.monotonic() - started > self.timeout:
                    proc.kill()
                    proc.wait()
                    raise subprocess.TimeoutExpired(cmd, self.timeout)
                time.sleep(POLL_INTERVAL)

            out.seek(0)
            err.seek(0)
            return CommandResult(cmd, proc.returncode, out.read(), err.read())


class DryRunRunner(CommandRunner):
    """Records mutations instead of performing them.

    Read-only queries go to ``query_runner`` when one is given, so a dry run
    still sees the real host state; without one they succeed with no output.
    """

    dry_run = True

    def __init__(
        self,
        query_runner: Optional[CommandRunner] = None,
        ui: Optional["MigrationUI"] = None,
        timeout: Optional[int] = None
    ):
        super().__init__(ui=ui, timeout=timeout)
        self.query_runner = query_runner

    def record(self, kind: str, description: str, target: Optional[str] = None):
        self.actions.append(RecordedAction(kind, description, target))
        logger.info("[DRY-RUN] %s", description)
        if self.ui:
            self.ui.print_dry_run(description)

    def run(
        self,
        command: Sequence[str],
        mutating: bool = True,
        input_text: Optional[str] = None,
        status: Optional[str] = None,
    ) -> CommandResult:
        cmd = [str(part) for part in command]
        if mutating:
            self.record("command", f"run: {shlex.join(cmd)}")
            return CommandResult(cmd, 0, dry_run=True)
        if self.query_runner is not None:
            return self.query_runner.run(cmd, mutating=False, input_text=input_text)
        return CommandResult(cmd, 0, dry_run=True)

    def which(self, name: str) -> bool:
        if self.query_runner is not None:
            return self.query_runner.which(name)
        return True

    def write_file(self, path: Path, content: str, mode: Optional[int] = None):
        self.record("write", f"write {path} ({len(content.splitlines())} lines)", str(path))

    def copy_file(self, src: Path, dst: Path):
        self.record("copy", f"copy {src} to {dst}", str(dst))

    def move_path(self, src: Path, dst: Path):
        self.record("move", f"move {src} to {dst}", str(dst))

    def symlink(self, target: Path, link: Path):
        self.record("symlink", f"link {link} -> {target}", str(link))

    def remove_file(self, path: Path):
        self.record("remove", f"remove {path}", str(path))
