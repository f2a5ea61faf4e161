"""Shared test fixtures for pulsekit."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from pulsekit.bridge.context import StaticContextProvider
from pulsekit.bridge.transport import DeliveryFailure, InMemoryTransport
from pulsekit.core.client import Analytics, configure
from pulsekit.core.middleware import MiddlewareRegistry
from pulsekit.core.readiness import IntegrationReadinessRegistry
from pulsekit.core.stats import StatsRecorder
from pulsekit.models.options import AnalyticsOptions
from pulsekit.models.payloads import BasePayload, PayloadType, TrackPayload, build

TEST_WRITE_KEY = "test-write-key"


class RecordingDestination:
    """Destination that keeps every payload it receives.

    ``fail_times`` makes the first N deliveries raise ``DeliveryFailure``;
    ``fail_always`` makes every delivery raise.
    """

    def __init__(self, key: str = "recorder", *, fail_times: int = 0, fail_always: bool = False) -> None:
        self._key = key
        self._fail_times = fail_times
        self._fail_always = fail_always
        self.attempts = 0
        self.received: list[BasePayload] = []
        self.flushes = 0
        self.resets = 0

    @property
    def key(self) -> str:
        return self._key

    def deliver(self, payload: BasePayload) -> None:
        self.attempts += 1
        if self._fail_always or self.attempts <= self._fail_times:
            raise DeliveryFailure(self._key, "refused by test destination")
        self.received.append(payload)

    def flush(self) -> None:
        self.flushes += 1

    def reset(self) -> None:
        self.resets += 1

    @property
    def events(self) -> list[str]:
        return [p.event for p in self.received if isinstance(p, TrackPayload)]


@pytest.fixture(autouse=True)
def _reset_library_logger() -> Iterator[None]:
    """``configure()`` sets the pulsekit logger level; undo it per test."""
    yield
    logging.getLogger("pulsekit").setLevel(logging.NOTSET)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def transport() -> InMemoryTransport:
    """Provide a fresh in-memory transport for the collector."""
    return InMemoryTransport()


@pytest.fixture
def context_provider() -> StaticContextProvider:
    """Provide a deterministic device context."""
    return StaticContextProvider({"app": {"name": "pulsekit-tests", "version": "1.0.0"}})


@pytest.fixture
def registry() -> MiddlewareRegistry:
    return MiddlewareRegistry()


@pytest.fixture
def readiness() -> IntegrationReadinessRegistry:
    return IntegrationReadinessRegistry()


@pytest.fixture
def stats() -> StatsRecorder:
    return StatsRecorder()


# ---------------------------------------------------------------------------
# Factories — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_destination() -> Callable[..., RecordingDestination]:
    """Factory fixture: build a RecordingDestination."""

    def _factory(key: str = "recorder", **kwargs: Any) -> RecordingDestination:
        return RecordingDestination(key, **kwargs)

    return _factory


@pytest.fixture
def make_track() -> Callable[..., BasePayload]:
    """Factory fixture: build a track payload with sensible defaults."""

    def _factory(event: str = "Button A Clicked", **overrides: Any) -> BasePayload:
        return build(PayloadType.TRACK, event=event, **overrides)

    return _factory


@pytest.fixture
def make_analytics(
    transport: InMemoryTransport, context_provider: StaticContextProvider
) -> Iterator[Callable[..., Analytics]]:
    """Factory fixture: configure a client with test defaults.

    Timer flushes are disabled unless overridden.  Every client built is
    shut down at teardown.
    """
    created: list[Analytics] = []

    def _factory(
        options: AnalyticsOptions | dict[str, Any] | None = None, **kwargs: Any
    ) -> Analytics:
        values: dict[str, Any] = {"flush_interval": 0}
        if isinstance(options, AnalyticsOptions):
            values.update(options.model_dump())
        elif options:
            values.update(options)
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("context_provider", context_provider)
        analytics = configure(TEST_WRITE_KEY, values, **kwargs)
        created.append(analytics)
        return analytics

    yield _factory

    for analytics in created:
        analytics.shutdown()
