"""pulsekit CLI — Typer-based command-line interface.

Provides the ``pulsekit`` command with subcommands for running the sample
pipeline, sending a single event, and showing effective settings.

All output uses Rich for formatted terminal display.
"""
