"""Project settings — per-integration settings plus the tracking plan."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

# Name of the built-in collection destination.  Its settings always carry
# the write key as ``apiKey``.
COLLECTOR_DESTINATION = "Pulse.io"


class EventPlan(BaseModel):
    """Tracking-plan entry for one event name."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    integrations: dict[str, bool] = {}


class TrackingPlan(BaseModel):
    """Allow/deny rules for track events, keyed by event name."""

    model_config = ConfigDict(frozen=True)

    track: dict[str, EventPlan] = {}

    def for_event(self, event: str) -> EventPlan | None:
        return self.track.get(event)


class ProjectSettings(BaseModel):
    """Settings for every integration, plus the tracking plan.

    Built from the ``default_integration_settings`` option when no remote
    settings are available.  The collector destination is always present.
    """

    model_config = ConfigDict(frozen=True)

    integrations: dict[str, dict[str, Any]] = {}
    plan: TrackingPlan = TrackingPlan()

    @classmethod
    def create(
        cls, write_key: str, defaults: dict[str, Any] | None = None
    ) -> ProjectSettings:
        """Merge *defaults* with the collector's own settings.

        *defaults* has the same shape as the serialized settings:
        ``{"integrations": {name: {...}}, "plan": {"track": {...}}}``.
        Collector settings supplied in *defaults* are kept and extended
        with ``apiKey``.
        """
        defaults = defaults or {}
        integrations: dict[str, dict[str, Any]] = {
            name: dict(values)
            for name, values in (defaults.get("integrations") or {}).items()
        }
        collector = integrations.get(COLLECTOR_DESTINATION, {})
        integrations[COLLECTOR_DESTINATION] = {**collector, "apiKey": write_key}
        plan = TrackingPlan.model_validate(defaults.get("plan") or {})
        return cls(integrations=integrations, plan=plan)

    def settings_for(self, destination: str) -> dict[str, Any]:
        """Return the settings mapping for *destination* (empty if absent)."""
        return dict(self.integrations.get(destination, {}))
