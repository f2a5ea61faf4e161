"""Sample-app smoke test — verifies the full pulsekit pipeline.

Reads PULSEKIT_* settings (or .env), routes a few events to the collector
queue and the local file destination, and prints what was delivered.

Usage:
    python demo_sample.py
"""

from __future__ import annotations

from pulsekit import __version__, configure
from pulsekit.bridge.transport import LocalQueueTransport
from pulsekit.config import settings
from pulsekit.models.project import COLLECTOR_DESTINATION
from pulsekit.routing.destinations.local_file import LocalFileDestination


def main() -> None:
    """Run a sample-app smoke test pipeline."""
    print(f"pulsekit v{__version__} SAMPLE MODE")
    print(f"Batch size: {settings.flush_queue_size} | Events: {settings.events_path}")
    print()

    files = LocalFileDestination(settings.events_path)
    with LocalQueueTransport(queue_db_path=settings.queue_db_path) as transport:
        with configure(
            settings.write_key or "sample-write-key",
            settings.to_options(record_screen_views=True),
            transport=transport,
            destinations=[files],
        ) as analytics:
            print(f"Anonymous ID: {analytics.anonymous_id}")
            analytics.record_screen_view("Main")
            analytics.track("Button A Clicked")
            analytics.track("Button B Clicked", {"source": "smoke"})

        snapshot = analytics.snapshot()
        print(f"Collector queue depth: {transport.depth}")

    for dest in snapshot.destinations:
        icon = {"ready": "OK", "failed": "!!", "unknown": "--"}.get(dest.state.value, "??")
        print(f"  [{icon}] {dest.name}: {dest.delivered} delivered, {dest.failed} failed")

    print()
    print(f"Sample pipeline complete: {snapshot.delivered} deliveries to "
          f"{COLLECTOR_DESTINATION} and local files")


if __name__ == "__main__":
    main()
