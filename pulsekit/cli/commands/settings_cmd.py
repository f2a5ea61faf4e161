"""``pulsekit settings`` — show the effective environment settings."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from pulsekit.config import PulsekitSettings

console = Console()


def settings_cmd() -> None:
    """Print settings resolved from PULSEKIT_* variables and .env."""
    current = PulsekitSettings()

    table = Table(title="pulsekit settings", header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_column("Env var", style="dim")

    for name, value in current.model_dump().items():
        shown = value
        if name == "write_key" and value:
            shown = f"{value[:4]}..."
        table.add_row(name, "[dim]-[/dim]" if shown in (None, "") else str(shown), f"PULSEKIT_{name.upper()}")

    console.print(table)
