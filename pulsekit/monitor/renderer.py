"""Rich terminal renderer for pipeline statistics.

Turns ``StatsSnapshot`` into Rich renderables for terminal display, with
color-coded destination states.

Color scheme
------------
- green     : READY
- red       : FAILED
- yellow    : INITIALIZING
- dim       : UNKNOWN
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pulsekit.models.destinations import DestinationState
from pulsekit.models.stats import StatsSnapshot


# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[DestinationState, str] = {
    DestinationState.READY: "bold green",
    DestinationState.FAILED: "bold red",
    DestinationState.INITIALIZING: "bold yellow",
    DestinationState.UNKNOWN: "dim",
}

_STATE_LABELS: dict[DestinationState, str] = {
    DestinationState.READY: "[green]READY[/green]",
    DestinationState.FAILED: "[bold red]FAILED[/bold red]",
    DestinationState.INITIALIZING: "[yellow]INITIALIZING[/yellow]",
    DestinationState.UNKNOWN: "[dim]UNKNOWN[/dim]",
}


class StatsRenderer:
    """Renders ``StatsSnapshot`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_snapshot(self, snapshot: StatsSnapshot, *, title: str = "pulsekit") -> Panel:
        """Render a snapshot as a Panel containing a destination table."""
        table = self._build_destination_table(snapshot)

        summary_parts: list[str] = [
            f"[bold]Enqueued:[/bold] {snapshot.enqueued}",
            f"[bold]Flushes:[/bold] {snapshot.flush_count}",
            f"[bold]Delivered:[/bold] {snapshot.delivered}",
            f"[bold]Pending:[/bold] {snapshot.pending}",
        ]
        if snapshot.source_dropped:
            summary_parts.append(
                f"[yellow][bold]Dropped at source:[/bold] {snapshot.source_dropped}[/yellow]"
            )
        if snapshot.retry_pending:
            summary_parts.append(
                f"[yellow][bold]Retrying:[/bold] {snapshot.retry_pending}[/yellow]"
            )
        if snapshot.retry_exhausted:
            summary_parts.append(
                f"[bold red]Gave up:[/bold red] {snapshot.retry_exhausted}"
            )
        summary = "  |  ".join(summary_parts)

        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title=f"[bold]{title}[/bold]",
            subtitle=f"Taken: {snapshot.taken_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="blue",
            padding=(1, 2),
        )

    def _build_destination_table(self, snapshot: StatsSnapshot) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)

        table.add_column("Destination", min_width=20)
        table.add_column("State", min_width=14, justify="center")
        table.add_column("Delivered", justify="right")
        table.add_column("Dropped", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Failed", justify="right")

        for dest in snapshot.destinations:
            style = _STATE_STYLES.get(dest.state, "")
            failed = f"[red]{dest.failed}[/red]" if dest.failed else "[dim]0[/dim]"
            table.add_row(
                f"[{style}]{dest.name}[/{style}]",
                _STATE_LABELS.get(dest.state, dest.state.value),
                str(dest.delivered),
                str(dest.dropped),
                str(dest.skipped),
                failed,
            )

        return table

    def print_snapshot(self, snapshot: StatsSnapshot, *, title: str = "pulsekit") -> None:
        """Print a single snapshot to the console."""
        self.console.print(self.render_snapshot(snapshot, title=title))
