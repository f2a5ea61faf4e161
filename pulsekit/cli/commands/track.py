"""``pulsekit track`` — record one event to the local file destination."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from pulsekit.config import settings
from pulsekit.core.client import configure
from pulsekit.models.options import ConfigurationError
from pulsekit.models.payloads import ValidationError
from pulsekit.routing.destinations.local_file import LocalFileDestination

console = Console()


def _parse_properties(pairs: list[str]) -> dict[str, str]:
    properties: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--property")
        properties[key] = value
    return properties


def track_cmd(
    event: str = typer.Argument(..., help="Event name, e.g. 'Button A Clicked'."),
    properties: Optional[list[str]] = typer.Option(
        None,
        "--property",
        "-p",
        help="Event property as KEY=VALUE.  Repeatable.",
    ),
    user_id: str = typer.Option("", "--user-id", "-u", help="Identified user id."),
    events_path: Optional[Path] = typer.Option(
        None,
        "--events",
        help="Directory to write the event file to (default: PULSEKIT_EVENTS_PATH).",
    ),
    write_key: Optional[str] = typer.Option(
        None, "--write-key", help="Write key (default: PULSEKIT_WRITE_KEY)."
    ),
) -> None:
    """Record a single track event and write it to a local JSON file."""
    parsed = _parse_properties(properties or [])
    destination = LocalFileDestination(events_path or settings.events_path)

    try:
        analytics = configure(
            write_key or settings.write_key or "local",
            settings.to_options(flush_interval=0),
            destinations=[destination],
        )
    except ConfigurationError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    try:
        if user_id:
            analytics.identify(user_id)
        analytics.track(event, parsed)
    except ValidationError as exc:
        console.print(f"[bold red]Invalid event:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        analytics.shutdown()

    stats = analytics.snapshot().destination(destination.key)
    delivered = stats.delivered if stats else 0
    console.print(
        Panel(
            "\n".join([
                f"[bold]Event:[/bold]      {event}",
                f"[bold]Properties:[/bold] {len(parsed)}",
                f"[bold]Written:[/bold]    {delivered} file(s) under {destination.base_path}",
            ]),
            title="[bold]pulsekit track[/bold]",
            border_style="green" if delivered else "red",
            padding=(1, 2),
        )
    )
