"""Thread-safe pipeline counters."""

from __future__ import annotations

import threading
from collections import defaultdict

from pulsekit.models.destinations import DestinationState
from pulsekit.models.stats import DestinationStats, StatsSnapshot

_OUTCOMES = ("delivered", "dropped", "skipped", "failed")


class StatsRecorder:
    """Counts what the pipeline does; ``snapshot()`` freezes the counts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._enqueued = 0
        self._source_dropped = 0
        self._flush_count = 0
        self._flushed_payloads = 0
        self._retried = 0
        self._retry_exhausted = 0
        self._per_destination: dict[str, dict[str, int]] = defaultdict(
            lambda: dict.fromkeys(_OUTCOMES, 0)
        )

    def record_enqueued(self) -> None:
        with self._lock:
            self._enqueued += 1

    def record_source_dropped(self) -> None:
        with self._lock:
            self._source_dropped += 1

    def record_flush(self, size: int) -> None:
        with self._lock:
            self._flush_count += 1
            self._flushed_payloads += size

    def record_retry(self) -> None:
        with self._lock:
            self._retried += 1

    def record_retry_exhausted(self) -> None:
        with self._lock:
            self._retry_exhausted += 1

    def record_outcome(self, destination: str, outcome: str) -> None:
        if outcome not in _OUTCOMES:
            raise ValueError(f"Unknown outcome: {outcome!r}")
        with self._lock:
            self._per_destination[destination][outcome] += 1

    def snapshot(
        self,
        states: dict[str, DestinationState] | None = None,
        *,
        pending: int = 0,
        retry_pending: int = 0,
    ) -> StatsSnapshot:
        states = states or {}
        with self._lock:
            names = list(self._per_destination)
            names.extend(name for name in states if name not in self._per_destination)
            destinations = [
                DestinationStats(
                    name=name,
                    state=states.get(name, DestinationState.UNKNOWN),
                    **self._per_destination.get(name, dict.fromkeys(_OUTCOMES, 0)),
                )
                for name in names
            ]
            return StatsSnapshot(
                enqueued=self._enqueued,
                source_dropped=self._source_dropped,
                flush_count=self._flush_count,
                flushed_payloads=self._flushed_payloads,
                retried=self._retried,
                retry_exhausted=self._retry_exhausted,
                pending=pending,
                retry_pending=retry_pending,
                destinations=destinations,
            )
