"""Destination readiness states — strict lifecycle transitions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class DestinationState(str, Enum):
    """Lifecycle of one destination instance."""

    UNKNOWN = "unknown"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


# Valid state transitions, enforced by IntegrationReadinessRegistry.
# READY and FAILED are terminal; re-initialization builds a new registry.
VALID_TRANSITIONS: dict[DestinationState, set[DestinationState]] = {
    DestinationState.UNKNOWN: {
        DestinationState.INITIALIZING,
        DestinationState.READY,
        DestinationState.FAILED,
    },
    DestinationState.INITIALIZING: {DestinationState.READY, DestinationState.FAILED},
    DestinationState.READY: set(),  # terminal
    DestinationState.FAILED: set(),  # terminal
}


class DestinationTransition(BaseModel):
    """Records a single readiness transition."""

    model_config = ConfigDict(frozen=True)

    destination: str
    from_state: DestinationState
    to_state: DestinationState
    reason: str | None = None
