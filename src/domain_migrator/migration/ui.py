"""
Domain Migration UI Components

Reusable UI components for the migration workflow using rich library.
"""

import re
import time
from typing import Optional, List, Callable, Tuple, Sequence
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, Confirm
from rich.table import Table


# Patterns that indicate a secret value
SECRET_PATTERNS = [
    "password", "passwd", "secret", "credential", "token", "pass",
]

# Validators used by prompts return (is_valid, message) like the ones in validators.py
Validator = Callable[[str], Tuple[bool, str]]


def mask_secrets(text: str, mask: str = "********") -> str:
    """Mask secrets in a string.

    Args:
        text: The text that may contain secrets
        mask: The string to replace secrets with

    Returns:
        Text with secrets masked
    """
    if not text:
        return text

    result = text

    # Mask known secret patterns in key=value / key: value format
    for pattern in SECRET_PATTERNS:
        regex = rf'({pattern}["\']?\s*[=:]\s*["\']?)([^"\'\s|]+)(["\']?)'
        result = re.sub(regex, rf'\1{mask}\3', result, flags=re.IGNORECASE)

    return result


def is_secret_key(key: str) -> bool:
    """Check if a key name indicates it holds a secret value."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SECRET_PATTERNS)


class MigrationUI:
    """UI components for the domain migration workflow."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._step_number = 0
        self._total_steps = 0

    def print_header(self, title: str = "Domain Migration", subtitle: str = ""):
        """Print the migration header."""
        self.console.print()
        body = f"[bold blue]{title}[/bold blue]"
        if subtitle:
            body += f"\n[dim]{subtitle}[/dim]"
        self.console.print(Panel(body, border_style="blue", padding=(0, 2)))
        self.console.print()

    def print_step_header(self, step_num: int, title: str, description: str = ""):
        """Print a step header with number and title."""
        self._step_number = step_num
        self.console.print()
        self.console.print(f"[bold cyan]Step {step_num}/{self._total_steps}:[/bold cyan] [bold]{title}[/bold]")
        if description:
            self.console.print(f"[dim]{description}[/dim]")
        self.console.print()

    def print_success(self, message: str):
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str):
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str):
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str):
        """Print an info message."""
        self.console.print(f"[blue]ℹ[/blue] {message}")

    def print_skip(self, message: str):
        """Print a skip message."""
        self.console.print(f"[dim]○ {message} (skipped)[/dim]")

    def print_dry_run(self, message: str):
        """Print an action that dry-run mode recorded instead of executing."""
        self.console.print(f"[magenta][DRY-RUN][/magenta] Would {message}")

    def prompt_text(
        self,
        prompt: str,
        default: str = "",
        required: bool = False,
        validator: Optional[Validator] = None,
        error_message: str = "Invalid input"
    ) -> str:
        """Prompt for text input, re-asking until the validator accepts it."""
        while True:
            value = Prompt.ask(prompt, default=default if default else None, console=self.console)
            value = (value or "").strip()

            if required and not value:
                self.print_error("This field is required")
                continue

            if validator and value:
                valid, message = validator(value)
                if not valid:
                    self.print_error(f"{error_message}: {message}")
                    continue

            return value

    def prompt_password(self, prompt: str, required: bool = False) -> str:
        """Prompt for password/secret input."""
        while True:
            value = Prompt.ask(prompt, password=True, console=self.console)

            if required and not value:
                self.print_error("This field is required")
                continue

            return value

    def prompt_confirm(self, prompt: str, default: bool = False) -> bool:
        """Prompt for yes/no confirmation."""
        return Confirm.ask(prompt, default=default, console=self.console)

    def prompt_choice(
        self,
        prompt: str,
        choices: List[str],
        default: Optional[str] = None
    ) -> str:
        """Prompt for a choice from a numbered list."""
        self.console.print(f"\n{prompt}")
        for i, choice in enumerate(choices, 1):
            marker = "[bold green]→[/bold green]" if choice == default else " "
            self.console.print(f"  {marker} [{i}] {choice}")

        while True:
            selection = Prompt.ask(
                f"Enter your choice (1-{len(choices)})",
                default=str(choices.index(default) + 1) if default else None,
                console=self.console
            )

            try:
                idx = int(selection) - 1
                if 0 <= idx < len(choices):
                    return choices[idx]
            except (TypeError, ValueError):
                pass

            for choice in choices:
                if selection and choice.lower() == selection.lower():
                    return choice

            self.print_error(f"Invalid selection. Choose 1-{len(choices)}")

    def status(self, message: str):
        """Spinner shown while a long-running external process is alive."""
        return self.console.status(message, spinner="dots")

    def countdown(self, seconds: int, message: str):
        """Count down before a destructive action; Ctrl+C aborts."""
        if seconds <= 0:
            return
        self.print_warning(f"{message} in {seconds} seconds... Press Ctrl+C to cancel")
        for remaining in range(seconds, 0, -1):
            self.console.print(f"{remaining}... ", end="")
            time.sleep(1)
        self.console.print()

    def show_checklist(self, items: Sequence[Tuple[str, str, str]]):
        """Show a checklist of items with status.

        Args:
            items: List of (name, status, message) tuples where status is
                "pass", "warn", "fail" or "info"
        """
        for name, status, message in items:
            if status == "pass":
                self.print_success(f"{name}: {message}")
            elif status == "warn":
                self.print_warning(f"{name}: {message}")
            elif status == "fail":
                self.print_error(f"{name}: {message}")
            else:
                self.print_info(f"{name}: {message}")

    def show_summary_table(self, title: str, data: dict):
        """Show a summary table with secrets masked."""
        table = Table(title=title, border_style="blue")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        for key, value in data.items():
            if is_secret_key(key):
                display_value = "********" if value else "[dim]not set[/dim]"
            else:
                display_value = mask_secrets(str(value)) if value else "[dim]not set[/dim]"
            table.add_row(key, display_value)

        self.console.print(table)

    def show_completion_panel(
        self,
        title: str,
        content: str,
        next_steps: List[str],
        style: str = "green"
    ):
        """Show a completion panel with next steps."""
        self.console.print()
        self.console.print(Panel(
            f"[bold {style}]{title}[/bold {style}]\n\n{content}",
            border_style=style,
            padding=(1, 2)
        ))

        if next_steps:
            self.console.print()
            self.console.print("[bold]Next Steps:[/bold]")
            for i, step in enumerate(next_steps, 1):
                self.console.print(f"  {i}. {step}")

    def show_fatal(self, message: str, remediation: Optional[str] = None, details: Optional[str] = None):
        """Show a fatal error with actionable next steps."""
        self.console.print()
        self.print_error(f"[bold]{message}[/bold]")
        if details:
            self.console.print(f"[dim]{mask_secrets(details)}[/dim]")
        if remediation:
            self.print_info(f"To fix: {remediation}")
