"""pulsekit data models — all Pydantic v2, all frozen (immutable)."""

from pulsekit.models.destinations import (
    VALID_TRANSITIONS,
    DestinationState,
    DestinationTransition,
)
from pulsekit.models.options import (
    ALL_INTEGRATIONS_KEY,
    AnalyticsOptions,
    CallOptions,
    ConfigurationError,
    LogLevel,
)
from pulsekit.models.payloads import (
    PAYLOAD_TYPE_MAP,
    AliasPayload,
    BasePayload,
    GroupPayload,
    IdentifyPayload,
    PayloadBuilder,
    PayloadType,
    ScreenPayload,
    TrackPayload,
    ValidationError,
    build,
)
from pulsekit.models.project import (
    COLLECTOR_DESTINATION,
    EventPlan,
    ProjectSettings,
    TrackingPlan,
)
from pulsekit.models.stats import DestinationStats, StatsSnapshot

__all__ = [
    # payloads
    "PayloadType",
    "BasePayload",
    "TrackPayload",
    "IdentifyPayload",
    "ScreenPayload",
    "GroupPayload",
    "AliasPayload",
    "PayloadBuilder",
    "PAYLOAD_TYPE_MAP",
    "ValidationError",
    "build",
    # options
    "ALL_INTEGRATIONS_KEY",
    "AnalyticsOptions",
    "CallOptions",
    "ConfigurationError",
    "LogLevel",
    # destinations
    "DestinationState",
    "DestinationTransition",
    "VALID_TRANSITIONS",
    # project settings
    "COLLECTOR_DESTINATION",
    "EventPlan",
    "ProjectSettings",
    "TrackingPlan",
    # stats
    "DestinationStats",
    "StatsSnapshot",
]
