"""Integration filtering — per-call flags and the tracking plan.

Decides, before a destination's middleware runs, whether a payload should
be offered to that destination at all.  Precedence:

1. A track event disabled outright by the tracking plan goes nowhere, and
   per-call options cannot override that.
2. An explicit per-call flag for the destination wins.
3. A tracking-plan flag for the destination applies next.
4. Otherwise the per-call ``"All"`` flag decides (default enabled).
"""

from __future__ import annotations

from pulsekit.models.options import ALL_INTEGRATIONS_KEY
from pulsekit.models.payloads import BasePayload, TrackPayload
from pulsekit.models.project import TrackingPlan


def skip_reason(
    payload: BasePayload, destination: str, plan: TrackingPlan | None = None
) -> str | None:
    """Return why *destination* must not receive *payload*, or ``None``."""
    event_plan = None
    if plan is not None and isinstance(payload, TrackPayload):
        event_plan = plan.for_event(payload.event)
        if event_plan is not None and not event_plan.enabled:
            return f"event {payload.event!r} disabled by tracking plan"

    flags = payload.integrations
    if destination in flags:
        if flags[destination]:
            return None
        return "disabled by call options"

    if event_plan is not None and destination in event_plan.integrations:
        if event_plan.integrations[destination]:
            return None
        return "disabled for this destination by tracking plan"

    if not flags.get(ALL_INTEGRATIONS_KEY, True):
        return "all integrations disabled by call options"
    return None
