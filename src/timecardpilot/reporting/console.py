"""Rich-powered console output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from timecardpilot.exceptions import DomainError
from timecardpilot.models import ProcessingResult, RunMetrics

_console = Console()


def print_banner(dry_run: bool = False) -> None:
    """Display the startup banner."""
    mode = "  [bold yellow](dry run)[/bold yellow]" if dry_run else ""
    _console.print(
        Panel.fit(
            "[bold cyan]TimecardPilot[/bold cyan]  —  Clock-stamp correction requests" + mode,
            border_style="cyan",
        )
    )


def print_result(result: ProcessingResult) -> None:
    """Print a single row result line."""
    style_map = {
        "success": "bold green",
        "skipped": "dim yellow",
        "failed": "bold red",
    }
    style = style_map.get(result.kind.value, "")
    _console.print(
        f"  [{style}]{result.ordinal:>4}[/{style}]  "
        f"[{style}]{result.kind.value:<8}[/{style}]  "
        f"{result.message}"
    )


def print_run_report(metrics: RunMetrics, status: str) -> None:
    """Display a run summary table."""
    table = Table(title="Run Report", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Status", status)
    table.add_row("Processed", str(metrics.processed))
    table.add_row("Errored", str(metrics.errored))
    table.add_row("Skipped", str(metrics.skipped))
    table.add_row("Elapsed", f"{metrics.elapsed_seconds:.1f} s")
    table.add_row("Session ID", metrics.session_id)
    table.add_row("Started", metrics.started_at)
    table.add_row("Ended", metrics.ended_at or "—")

    _console.print()
    _console.print(table)
    _console.print()


def print_fatal(error: DomainError) -> None:
    """Display the error that terminated the run."""
    lines = [f"[bold red]{error.kind.value}[/bold red]  {error.message}"]
    for key, value in error.context.items():
        lines.append(f"  [dim]{key}[/dim]: {value}")
    _console.print(Panel("\n".join(lines), title="Fatal error", border_style="red"))
