"""``pulsekit demo`` — replay the sample app configuration locally.

Configures a client the way the reference sample app does (a source
middleware that passes everything through, a collector middleware that
only forwards ``Button B Clicked``, batch size 1), records a handful of
events, and renders the resulting statistics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel

from pulsekit.bridge.transport import LocalQueueTransport
from pulsekit.core.chain import Chain
from pulsekit.core.client import configure
from pulsekit.models.options import AnalyticsOptions, LogLevel
from pulsekit.models.payloads import TrackPayload
from pulsekit.models.project import COLLECTOR_DESTINATION
from pulsekit.monitor.renderer import StatsRenderer
from pulsekit.routing.destinations.local_file import LocalFileDestination

console = Console()

SAMPLE_WRITE_KEY = "sample-write-key"
FORWARDED_EVENT = "Button B Clicked"

SAMPLE_PROJECT_SETTINGS: dict[str, Any] = {
    "integrations": {
        "Adjust": {"appToken": "<>", "trackAttributionData": True},
    },
}


def pass_through(chain: Chain) -> None:
    """Source middleware: forward every payload, rebuilding Button B clicks."""
    payload = chain.payload
    if isinstance(payload, TrackPayload) and payload.event.lower() == FORWARDED_EVENT.lower():
        chain.proceed(payload.to_builder().build())
        return
    chain.proceed(payload)


def only_button_b(chain: Chain) -> None:
    """Collector middleware: forward ``Button B Clicked``, drop the rest."""
    payload = chain.payload
    if isinstance(payload, TrackPayload) and payload.event.lower() == FORWARDED_EVENT.lower():
        chain.proceed(payload.to_builder().build())


def demo_cmd(
    events_path: Path = typer.Option(
        Path(".pulsekit/demo-events"),
        "--events",
        help="Directory the local file destination writes to.",
    ),
    queue_db: Optional[Path] = typer.Option(
        None,
        "--queue-db",
        help="SQLite file backing the collector queue (in-memory if omitted).",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every payload as it is enqueued."
    ),
) -> None:
    """Run the sample pipeline and show what each destination received."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    options = AnalyticsOptions(
        flush_queue_size=1,
        flush_interval=0,
        log_level=LogLevel.VERBOSE if verbose else LogLevel.NONE,
        default_integration_settings=SAMPLE_PROJECT_SETTINGS,
        track_application_lifecycle_events=True,
        track_attribution_information=True,
        record_screen_views=True,
        experimental_nanosecond_timestamps=True,
        tag="demo",
    )

    console.print()
    console.print(
        Panel(
            "[bold]pulsekit Demo Pipeline[/bold]\n\n"
            "Source middleware forwards everything.\n"
            f"The {COLLECTOR_DESTINATION} middleware forwards only "
            f"[cyan]{FORWARDED_EVENT}[/cyan].",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    ready: list[str] = []
    with LocalQueueTransport(queue_db_path=queue_db) as transport:
        analytics = configure(
            SAMPLE_WRITE_KEY,
            options,
            transport=transport,
            destinations=[LocalFileDestination(events_path)],
        )
        analytics.add_source_middleware(pass_through)
        analytics.add_destination_middleware(COLLECTOR_DESTINATION, only_button_b)
        analytics.on_integration_ready(
            COLLECTOR_DESTINATION, lambda instance: ready.append(COLLECTOR_DESTINATION)
        )

        analytics.application_started("1.0.0", 100)
        analytics.application_opened("1.0.0", 100)
        analytics.record_screen_view("Main")
        analytics.identify("sample-user", {"plan": "demo"})
        analytics.track("Button A Clicked")
        analytics.track(FORWARDED_EVENT, {"source": "demo"})
        analytics.track_attribution({"network": "organic"})
        analytics.application_backgrounded()
        analytics.shutdown()

        collected = transport.depth

    StatsRenderer(console=console).print_snapshot(analytics.snapshot(), title="Demo Summary")
    console.print(
        f"[bold]{COLLECTOR_DESTINATION} ready:[/bold] "
        f"{'[green]yes[/green]' if ready else '[red]no[/red]'}"
    )
    console.print(f"[bold]Collector queue depth:[/bold] {collected}")
    console.print(f"[bold]Event files:[/bold] {events_path}")
