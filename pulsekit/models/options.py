"""Client and per-call option models."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALL_INTEGRATIONS_KEY = "All"

DEFAULT_FLUSH_QUEUE_SIZE = 20
MAX_FLUSH_QUEUE_SIZE = 250
DEFAULT_FLUSH_INTERVAL = 30.0


class ConfigurationError(ValueError):
    """Raised when client options are invalid at configure time."""


class LogLevel(str, Enum):
    """Verbosity of the client's own logging."""

    NONE = "none"
    INFO = "info"
    DEBUG = "debug"
    BASIC = "basic"
    VERBOSE = "verbose"

    @property
    def python_level(self) -> int:
        """The ``logging`` level this verbosity maps onto."""
        return _PYTHON_LEVELS[self]

    def log_payloads(self) -> bool:
        """Whether serialized payload bodies should be logged."""
        return self == LogLevel.VERBOSE


_PYTHON_LEVELS: dict[LogLevel, int] = {
    LogLevel.NONE: logging.CRITICAL + 10,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.BASIC: logging.DEBUG,
    LogLevel.VERBOSE: logging.DEBUG,
}


class CallOptions(BaseModel):
    """Per-call overrides for a single event.

    ``integrations`` maps destination names (or ``"All"``) to enabled
    flags; ``context`` is merged over the device context for this event
    only.
    """

    model_config = ConfigDict(frozen=True)

    integrations: dict[str, bool] = {}
    context: dict[str, Any] = {}
    timestamp_ns: int | None = None

    def with_integration(self, name: str, enabled: bool) -> CallOptions:
        """Return a copy with one integration flag set."""
        return self.model_copy(
            update={"integrations": {**self.integrations, name: enabled}}
        )

    def with_context(self, key: str, value: Any) -> CallOptions:
        """Return a copy with one extra context entry."""
        return self.model_copy(update={"context": {**self.context, key: value}})

    def merged_with(self, overrides: CallOptions | None) -> CallOptions:
        """Return these options with *overrides* layered on top.

        Integration flags and context entries from *overrides* win key by
        key; its timestamp wins if set.  Neither input is modified.
        """
        if overrides is None:
            return self
        return CallOptions(
            integrations={**self.integrations, **overrides.integrations},
            context={**self.context, **overrides.context},
            timestamp_ns=(
                overrides.timestamp_ns
                if overrides.timestamp_ns is not None
                else self.timestamp_ns
            ),
        )


class AnalyticsOptions(BaseModel):
    """Options accepted by ``configure()``.

    Validation failures surface as ``pydantic.ValidationError`` from the
    constructor; ``configure()`` re-raises them as ``ConfigurationError``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    flush_queue_size: int = Field(DEFAULT_FLUSH_QUEUE_SIZE, ge=1, le=MAX_FLUSH_QUEUE_SIZE)
    flush_interval: float = Field(DEFAULT_FLUSH_INTERVAL, ge=0)
    flush_async: bool = False
    max_retries: int = Field(3, ge=0)
    log_level: LogLevel = LogLevel.NONE
    default_integration_settings: dict[str, Any] = {}
    track_application_lifecycle_events: bool = False
    track_attribution_information: bool = False
    record_screen_views: bool = False
    track_deep_links: bool = False
    experimental_nanosecond_timestamps: bool = False
    default_options: CallOptions = CallOptions()
    tag: str = ""

    @field_validator("log_level", mode="before")
    @classmethod
    def _coerce_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value
