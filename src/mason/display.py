"""Rich display utilities for the Mason CLI."""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from mason.builder.manager import BuildResult

console = Console()


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]✓[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]✗[/] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]⚠[/] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[bold blue]ℹ[/] {message}")


def print_session_list(sessions: list[dict[str, Any]]) -> None:
    """Print a table of resumable sessions."""
    if not sessions:
        print_info("No saved sessions found. Start one with [cyan]mason build hut[/]")
        return

    table = Table(title="Build Sessions")
    table.add_column("Session", style="cyan")
    table.add_column("Building")
    table.add_column("Phase")
    table.add_column("Checkpoints", justify="right")
    table.add_column("Last Modified")

    for session in sessions:
        modified = session.get("last_modified")
        if isinstance(modified, datetime):
            modified = modified.astimezone().strftime("%Y-%m-%d %H:%M")

        table.add_row(
            session["session_id"],
            session.get("building_type") or "-",
            session.get("phase") or "-",
            str(session.get("checkpoints", 0)),
            modified or "-",
        )

    console.print(table)


def print_build_result(result: "BuildResult") -> None:
    """Print the final panel for a build or resume."""
    report = result.report
    lines = [f"[bold]Session:[/] {result.session_id}"]
    if report:
        lines.append(f"[bold]Blocks placed:[/] {report.get('placed_blocks', 0)}/{report.get('total_blocks', 0)}")
        lines.append(f"[bold]Failed blocks:[/] {report.get('failed_blocks', 0)}")
        lines.append(f"[bold]Phase:[/] {report.get('phase', '-')}")

    verification = result.verification
    if verification is not None:
        status = "[green]PASSED[/]" if verification.passed else "[yellow]FAILED[/]"
        lines.append(f"[bold]Verification:[/] {status} ({verification.passed_tests}/{verification.tests} tests)")
        if verification.accuracy is not None:
            lines.append(f"[bold]Accuracy:[/] {verification.accuracy:.1f}%")
        for name in verification.failed_tests:
            lines.append(f"  [yellow]•[/] {name}")

    if result.reason:
        lines.append(f"[bold]Reason:[/] {result.reason}")

    for gate in result.validation:
        if not gate.passed:
            lines.append(f"  [red]•[/] {gate.gate}: {gate.message}")

    if result.success:
        title, color = "[bold green]✓ Built[/]", "green"
    elif result.status == "stopped":
        title, color = "[bold yellow]⏹ Stopped[/]", "yellow"
    else:
        title, color = "[bold red]✗ Failed[/]", "red"

    console.print()
    console.print(Panel("\n".join(lines), title=title, border_style=color))
    if result.status == "stopped":
        console.print(f"  Resume with [cyan]mason resume {result.session_id}[/]")
