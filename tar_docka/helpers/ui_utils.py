"""
CLI Utilities for Tar-Docka

Rich-based helpers for CLI output plus the subprocess wrapper every
docker / docker compose call goes through.
"""

import subprocess
from typing import Any, Callable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from .logging import get_logger

console = Console()
logger = get_logger(__name__)


# =============================================================================
# Subprocess handling
# =============================================================================

class SubprocessError(Exception):
    """External command failed (non-zero exit, timeout or missing binary)."""

    def __init__(self, cmd: Sequence[str], returncode: int, stderr: str = "", stdout: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr or ""
        self.stdout = stdout or ""
        detail = self.stderr.strip() or self.stdout.strip() or "no output"
        super().__init__(f"Command failed ({returncode}): {' '.join(self.cmd)}: {detail}")


def run_command(
    cmd: List[str],
    description: str,
    timeout: Optional[float] = None,
    check: bool = True,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run an external command and capture its output as text.

    Args:
        cmd: Command and arguments
        description: Human readable action, logged at DEBUG
        timeout: Seconds before the command is killed
        check: Raise SubprocessError on non-zero exit
        **kwargs: Passed to subprocess.run (e.g. cwd)

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        SubprocessError: If the command fails and check is True, times out,
            or the binary is missing
    """
    logger.debug(f"{description}: {' '.join(cmd)}", extra={"operation": description})
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            **kwargs,
        )
    except subprocess.TimeoutExpired as e:
        raise SubprocessError(cmd, -1, stderr=f"timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise SubprocessError(cmd, 127, stderr=f"{cmd[0]}: command not found") from e

    if check and result.returncode != 0:
        raise SubprocessError(cmd, result.returncode, stderr=result.stderr, stdout=result.stdout)
    return result


# =============================================================================
# Console output
# =============================================================================

def print_success(message: str):
    """Print success message with green checkmark"""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str):
    """Print error message with red X"""
    console.print(f"[red]✗[/red] {escape(message)}")


def print_warning(message: str):
    """Print warning message with yellow warning symbol"""
    console.print(f"[yellow]⚠[/yellow]  {escape(message)}")


def print_info(message: str):
    """Print info message with cyan arrow"""
    console.print(f"[cyan]→[/cyan] {escape(message)}")


def create_table(title: str, columns: List[tuple]) -> Table:
    """
    Create a styled Rich table

    Args:
        title: Table title
        columns: List of (name, style, width) tuples

    Returns:
        Rich Table instance
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for name, style, width in columns:
        table.add_column(name, style=style, width=width)
    return table


def prompt_text(message: str, default: Optional[str] = None) -> str:
    """Prompt user for text input; without a default, empty input gives ''."""
    if default is None:
        return Prompt.ask(message, console=console)
    return Prompt.ask(message, default=default, console=console)


def show_numbered(
    message: str,
    options: List[Any],
    display_fn: Optional[Callable[[Any], str]] = None,
) -> None:
    """
    Show a numbered (1-based) list of options.

    Args:
        message: Heading shown above the list
        options: Options to display
        display_fn: Optional function to format option for display
    """
    console.print(f"\n[cyan]{escape(message)}:[/cyan]")
    for i, option in enumerate(options, 1):
        display = display_fn(option) if display_fn else str(option)
        console.print(f"  [{i}] {escape(display)}")
