"""
Domain Migration Orchestrator

Runs the ordered migration steps, persisting progress after each one so an
interrupted migration can resume where it stopped.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Tuple

from rich.markup import escape

from domain_migrator.migration.context import MigrationContext
from domain_migrator.migration.exceptions import MigrationCancelled, MigrationError, REVERT_HINT, StateError
from domain_migrator.migration.logging_config import get_logger
from domain_migrator.migration.state import MigrationMode, MigrationState, StateStore


logger = get_logger(__name__)


@dataclass
class StepDefinition:
    """Definition of a migration step."""
    name: str
    title: str
    description: str
    handler: Callable[[MigrationContext], bool]
    mutating: bool = True
    requires: Tuple[str, ...] = ()
    # None means the step runs in every mode
    modes: Optional[FrozenSet[MigrationMode]] = None

    def runs_in(self, mode: MigrationMode) -> bool:
        return self.modes is None or mode in self.modes


class MigrationOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    INTERRUPTED = "interrupted"

    @property
    def exit_code(self) -> int:
        return {
            MigrationOutcome.COMPLETED: 0,
            MigrationOutcome.CANCELLED: 0,
            MigrationOutcome.FAILED: 1,
            MigrationOutcome.INTERRUPTED: 130,
        }[self]


def build_steps(definitions: Optional[List[dict]] = None) -> List[StepDefinition]:
    if definitions is None:
        from domain_migrator.migration.steps import MIGRATION_STEPS
        definitions = MIGRATION_STEPS
    return [StepDefinition(**definition) for definition in definitions]


class MigrationEngine:
    """Orchestrates the domain migration flow."""

    def __init__(
        self,
        ctx: MigrationContext,
        steps: Optional[List[StepDefinition]] = None,
        store: Optional[StateStore] = None
    ):
        self.ctx = ctx
        self.ui = ctx.ui
        self.steps = steps if steps is not None else build_steps()
        self.store = store or StateStore(ctx.settings.state_file, len(self.steps))
        self.state = MigrationState(mode=ctx.mode)
        self.executed: List[str] = []

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def run(self, resume: Optional[bool] = None) -> MigrationOutcome:
        """Run the migration.

        Args:
            resume: True/False to resume or discard saved progress without
                asking; None to ask when saved progress exists

        Returns:
            How the run ended
        """
        try:
            with self.store.lock():
                return self._run(resume)
        except StateError as e:
            self.ui.show_fatal(e.message, e.remediation, e.details)
            return MigrationOutcome.FAILED
        except OSError as e:
            logger.exception("Cannot use state file %s", self.store.path)
            self.ui.show_fatal(
                f"Cannot use saved progress at {self.store.path}: {escape(str(e))}",
                f"Check that {self.store.path.parent} is a root-owned directory and retry"
            )
            return MigrationOutcome.FAILED
        finally:
            self.ctx.params.clear_credentials()

    def _run(self, resume: Optional[bool]) -> MigrationOutcome:
        self._prepare_state(resume)
        self.ui._total_steps = self.total_steps

        try:
            for index in range(self.state.step, self.total_steps):
                if not self._execute(index, self.steps[index]):
                    self.ui.print_error(f"Step '{self.steps[index].title}' failed. Migration halted.")
                    self.ui.print_info(REVERT_HINT)
                    return MigrationOutcome.FAILED
        except KeyboardInterrupt:
            self._print_interrupted()
            return MigrationOutcome.INTERRUPTED
        except MigrationCancelled as e:
            self.ui.print_warning(e.message)
            logger.info("Cancelled at step %d", self.state.step)
            return MigrationOutcome.CANCELLED
        except MigrationError as e:
            logger.error("Step %s failed: %s", self.state.step, e.message)
            self.ui.show_fatal(e.message, e.remediation, e.details)
            if e.remediation != REVERT_HINT:
                self.ui.print_info(REVERT_HINT)
            self._print_resume_hint()
            return MigrationOutcome.FAILED
        except Exception as e:
            logger.exception("Unexpected error in step %s", self.state.step)
            self.ui.show_fatal(f"Step '{self._current_title()}' failed: {escape(str(e))}", REVERT_HINT)
            self._print_resume_hint()
            return MigrationOutcome.FAILED

        self._finish()
        if self.ctx.reboot_requested:
            try:
                self._reboot()
            except KeyboardInterrupt:
                self.ui.print_warning("Reboot cancelled. Please reboot manually.")
        return MigrationOutcome.COMPLETED

    def _prepare_state(self, resume: Optional[bool]):
        """Load saved progress and decide where to start."""
        try:
            persisted = self.store.load()
        except StateError as e:
            self.ui.print_warning(f"Ignoring unreadable saved progress: {e.message}")
            logger.warning("Resetting malformed state file %s: %s", self.store.path, e.message)
            self.store.clear()
            persisted = None

        if persisted is not None:
            persisted = self._check_persisted_mode(persisted)

        if persisted is not None and persisted.step >= self.total_steps:
            if persisted.mode.is_dry_run:
                self.ui.print_info("The previous dry run finished; starting a new one.")
            else:
                self.ui.print_warning(
                    f"A previous {persisted.mode.value} migration completed every step but its saved "
                    "progress was not cleared; starting a new migration."
                )
            logger.info("Discarding finished %s state", persisted.mode.value)
            persisted = None

        if persisted is not None and resume is None:
            self.ui.print_warning(
                f"A previous migration stopped after step {persisted.step} "
                f"(domain: {persisted.domain or 'not set'}, hostname: {persisted.hostname or 'not set'})."
            )
            resume = self.ui.prompt_confirm(f"Do you want to resume from step {persisted.step + 1}?", default=True)

        if persisted is not None and resume:
            self.state = MigrationState(
                step=persisted.step,
                mode=self.ctx.mode,
                domain=persisted.domain,
                hostname=persisted.hostname
            )
            self.ctx.params.domain = persisted.domain
            self.ctx.params.hostname = persisted.hostname
            self.ui.print_info(f"Resuming from step {persisted.step + 1}")
            logger.info("Resuming at step %d", persisted.step)
        else:
            self.store.clear()
            self.state = MigrationState(mode=self.ctx.mode)
            logger.info("Starting fresh migration in %s mode", self.ctx.mode.value)

        self.store.save(self.state)

    def _check_persisted_mode(self, persisted: MigrationState) -> Optional[MigrationState]:
        if persisted.mode.is_dry_run and not self.ctx.dry_run:
            self.ui.print_warning(
                "Saved progress comes from a dry run; nothing was changed by it. Starting over."
            )
            return None

        if self.ctx.dry_run and not persisted.mode.is_dry_run:
            raise StateError(
                f"A {persisted.mode.value} migration is in progress (stopped after step {persisted.step})",
                state_file=str(self.store.path),
                remediation="Resume it with --live/--technician or revert it before running a dry run"
            )
        return persisted

    def _execute(self, index: int, step: StepDefinition) -> bool:
        self.ui.print_step_header(index + 1, step.title, step.description)

        if not step.runs_in(self.ctx.mode):
            self.ui.print_skip(f"{step.title} is not available in {self.ctx.mode.label}")
            logger.info("Step %d (%s) gated by mode %s", index, step.name, self.ctx.mode.value)
        else:
            for requirement in step.requires:
                self.ctx.require(requirement)

            logger.info("Running step %d (%s)", index, step.name)
            if step.mutating and self.ctx.dry_run:
                self.ui.print_info("Changes in this step are recorded, not applied")
            if not step.handler(self.ctx):
                logger.error("Step %d (%s) reported failure", index, step.name)
                return False
            self.executed.append(step.name)

        self._advance(index)
        return True

    def _advance(self, index: int):
        self.state.step = index + 1
        self.state.domain = self.ctx.params.domain
        self.state.hostname = self.ctx.params.hostname
        self.store.save(self.state)
        logger.info("Completed step %d", index)

    def _finish(self):
        if self.ctx.dry_run:
            self.ui.print_info(f"Dry run state kept in {self.store.path}")
        else:
            self.store.clear()
        logger.info("Migration finished in %s mode", self.ctx.mode.value)

    def _reboot(self):
        self.ui.countdown(self.ctx.settings.reboot_countdown_seconds, "System will reboot")
        self.ctx.runner.run(["reboot"])

    def _print_interrupted(self):
        self.ui.console.print()
        self.ui.print_warning(f"Migration interrupted. Progress saved after step {self.state.step}.")
        self.ui.console.print("[yellow]To resume the migration, run:[/yellow]")
        self.ui.console.print(f"[cyan]  sudo domain-migrate --{self.ctx.mode.value} --resume[/cyan]")
        logger.warning("Interrupted at step %d", self.state.step)

    def _current_title(self) -> str:
        if self.state.step < self.total_steps:
            return self.steps[self.state.step].title
        return "finish"

    def _print_resume_hint(self):
        self.ui.print_info(
            f"Progress is saved; resume with: sudo domain-migrate --{self.ctx.mode.value} --resume"
        )
