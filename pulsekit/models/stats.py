"""Point-in-time pipeline statistics."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from pulsekit.models.destinations import DestinationState


class DestinationStats(BaseModel):
    """Delivery counters for one destination."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: DestinationState = DestinationState.UNKNOWN
    delivered: int = 0
    dropped: int = 0
    skipped: int = 0
    failed: int = 0


class StatsSnapshot(BaseModel):
    """A frozen snapshot of pipeline counters.

    Computed fresh on every ``Analytics.snapshot()`` call and never
    persisted.
    """

    model_config = ConfigDict(frozen=True)

    enqueued: int = 0
    source_dropped: int = 0
    flush_count: int = 0
    flushed_payloads: int = 0
    retried: int = 0
    retry_exhausted: int = 0
    pending: int = 0
    retry_pending: int = 0
    destinations: list[DestinationStats] = []
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def delivered(self) -> int:
        """Total deliveries across all destinations."""
        return sum(d.delivered for d in self.destinations)

    def destination(self, name: str) -> DestinationStats | None:
        for stats in self.destinations:
            if stats.name == name:
                return stats
        return None
