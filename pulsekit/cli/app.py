"""Main Typer application — imports and registers all CLI commands.

Entry point: ``pulsekit`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import typer

from pulsekit.cli.commands.demo import demo_cmd
from pulsekit.cli.commands.settings_cmd import settings_cmd
from pulsekit.cli.commands.track import track_cmd

app = typer.Typer(
    name="pulsekit",
    help="pulsekit: client-side telemetry with middleware chains.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="demo", help="Run the sample pipeline against local destinations.")(demo_cmd)
app.command(name="track", help="Record one event to the local file destination.")(track_cmd)
app.command(name="settings", help="Show effective PULSEKIT_* settings.")(settings_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
