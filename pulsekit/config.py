"""Environment-driven settings.

Centralized settings using pydantic-settings.  Reads from a .env file and
PULSEKIT_* environment variables, and turns them into ``AnalyticsOptions``
for ``configure()``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from pulsekit.models.options import (
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_FLUSH_QUEUE_SIZE,
    AnalyticsOptions,
)


class PulsekitSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export PULSEKIT_WRITE_KEY=abc123
        export PULSEKIT_FLUSH_QUEUE_SIZE=1
        export PULSEKIT_LOG_LEVEL=verbose

    Or via .env file::

        PULSEKIT_WRITE_KEY=abc123
        PULSEKIT_FLUSH_INTERVAL=0
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PULSEKIT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    write_key: str = ""

    # Queue
    flush_queue_size: int = DEFAULT_FLUSH_QUEUE_SIZE
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    flush_async: bool = False
    max_retries: int = 3

    # Logging
    log_level: str = "none"

    # Local destinations used by the CLI
    events_path: Path = Path(".pulsekit/events")
    queue_db_path: Path | None = None

    experimental_nanosecond_timestamps: bool = False
    tag: str = ""

    def to_options(self, **overrides: object) -> AnalyticsOptions:
        """Build ``AnalyticsOptions`` from these settings.

        Raises ``pydantic.ValidationError`` if a value is out of range.
        """
        values: dict[str, object] = {
            "flush_queue_size": self.flush_queue_size,
            "flush_interval": self.flush_interval,
            "flush_async": self.flush_async,
            "max_retries": self.max_retries,
            "log_level": self.log_level,
            "experimental_nanosecond_timestamps": self.experimental_nanosecond_timestamps,
            "tag": self.tag,
        }
        values.update(overrides)
        return AnalyticsOptions.model_validate(values)


# Module-level instance; import as `from pulsekit.config import settings`
settings = PulsekitSettings()
