"""Immutable event payloads and their builders.

Every event flowing through the pipeline is a frozen Pydantic model.
Modifications never happen in place: ``payload.to_builder()`` returns a
mutable ``PayloadBuilder`` seeded with the payload's fields, and
``builder.build()`` produces a new, re-validated payload.
"""

from __future__ import annotations

import copy
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ValidationError(ValueError):
    """Raised when a payload cannot be constructed from the given fields."""


class PayloadType(str, Enum):
    """The five event types understood by every destination."""

    IDENTIFY = "identify"
    TRACK = "track"
    SCREEN = "screen"
    GROUP = "group"
    ALIAS = "alias"


def _now_ns() -> int:
    return time.time_ns()


class BasePayload(BaseModel):
    """Fields shared by every payload type.

    ``timestamp_ns`` is wall-clock nanoseconds since the epoch; the
    ``timestamp`` property exposes it as an aware UTC datetime (microsecond
    precision, as ``datetime`` allows).
    """

    model_config = ConfigDict(frozen=True)

    type: PayloadType
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    anonymous_id: str = ""
    user_id: str = ""
    timestamp_ns: int = Field(default_factory=_now_ns)
    context: dict[str, Any] = {}
    integrations: dict[str, bool] = {}

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ns / 1_000_000_000, tz=timezone.utc)

    def to_builder(self) -> PayloadBuilder:
        """Return a mutable builder seeded with this payload's fields."""
        return PayloadBuilder.from_payload(self)


class TrackPayload(BasePayload):
    """A named user action."""

    type: PayloadType = PayloadType.TRACK
    event: str
    properties: dict[str, Any] = {}


class IdentifyPayload(BasePayload):
    """Ties a user id to a set of traits."""

    type: PayloadType = PayloadType.IDENTIFY
    traits: dict[str, Any] = {}


class ScreenPayload(BasePayload):
    """A screen (page) view."""

    type: PayloadType = PayloadType.SCREEN
    name: str = ""
    category: str = ""
    properties: dict[str, Any] = {}


class GroupPayload(BasePayload):
    """Associates the user with a group (company, team, account)."""

    type: PayloadType = PayloadType.GROUP
    group_id: str
    traits: dict[str, Any] = {}


class AliasPayload(BasePayload):
    """Merges ``previous_id`` into the new ``user_id``."""

    type: PayloadType = PayloadType.ALIAS
    previous_id: str = ""


# Registry for deserialization by payload type
PAYLOAD_TYPE_MAP: dict[PayloadType, type[BasePayload]] = {
    PayloadType.TRACK: TrackPayload,
    PayloadType.IDENTIFY: IdentifyPayload,
    PayloadType.SCREEN: ScreenPayload,
    PayloadType.GROUP: GroupPayload,
    PayloadType.ALIAS: AliasPayload,
}

# Fields a builder is allowed to carry for each type (beyond the base ones)
_TYPE_FIELDS: dict[PayloadType, tuple[str, ...]] = {
    PayloadType.TRACK: ("event", "properties"),
    PayloadType.IDENTIFY: ("traits",),
    PayloadType.SCREEN: ("name", "category", "properties"),
    PayloadType.GROUP: ("group_id", "traits"),
    PayloadType.ALIAS: ("previous_id",),
}

_BASE_FIELDS = (
    "message_id",
    "anonymous_id",
    "user_id",
    "timestamp_ns",
    "context",
    "integrations",
)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if not isinstance(value, str):
        raise ValidationError(f"Expected a string, got {type(value).__name__}: {value!r}")
    return not value.strip()


def _copy_value(value: Any) -> Any:
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error) as exc:
        raise ValidationError(f"Value cannot be copied into a payload: {exc}") from exc


def _validate(payload_type: PayloadType, fields: dict[str, Any]) -> None:
    """Apply the per-type construction rules."""
    if payload_type == PayloadType.TRACK:
        if _blank(fields.get("event")):
            raise ValidationError("event must not be null or empty.")
    elif payload_type == PayloadType.IDENTIFY:
        if _blank(fields.get("user_id")) and not fields.get("traits"):
            raise ValidationError("Either userId or some traits must be provided.")
    elif payload_type == PayloadType.SCREEN:
        if _blank(fields.get("name")) and _blank(fields.get("category")):
            raise ValidationError("either category or name must be provided.")
    elif payload_type == PayloadType.GROUP:
        if _blank(fields.get("group_id")):
            raise ValidationError("groupId must not be null or empty.")
    elif payload_type == PayloadType.ALIAS:
        if _blank(fields.get("user_id")):
            raise ValidationError("not allowed to pass null or empty alias")


class PayloadBuilder:
    """Mutable staging area for a payload.

    Values are deep-copied on the way in and on ``build()``, so neither the
    builder nor the caller's dicts alias the frozen payload.

    Usage
    -----
    >>> original = build(PayloadType.TRACK, event="Button B Clicked")
    >>> renamed = original.to_builder().event("Button C Clicked").build()
    >>> original.event
    'Button B Clicked'
    """

    def __init__(self, payload_type: PayloadType) -> None:
        self._type = PayloadType(payload_type)
        self._fields: dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: BasePayload) -> PayloadBuilder:
        builder = cls(payload.type)
        data = payload.model_dump(exclude={"type"})
        for key, value in data.items():
            builder._fields[key] = _copy_value(value)
        return builder

    @property
    def payload_type(self) -> PayloadType:
        return self._type

    def get(self, field: str, default: Any = None) -> Any:
        """Return the staged value of *field*, or *default* if unset."""
        return self._fields.get(field, default)

    # ------------------------------------------------------------------
    # Fluent setters
    # ------------------------------------------------------------------

    def set(self, field: str, value: Any) -> PayloadBuilder:
        """Set any field allowed for this payload type."""
        if field not in _BASE_FIELDS and field not in _TYPE_FIELDS[self._type]:
            raise ValidationError(
                f"Field {field!r} is not valid for {self._type.value} payloads"
            )
        self._fields[field] = _copy_value(value)
        return self

    def event(self, event: str) -> PayloadBuilder:
        return self.set("event", event)

    def user_id(self, user_id: str) -> PayloadBuilder:
        return self.set("user_id", user_id)

    def anonymous_id(self, anonymous_id: str) -> PayloadBuilder:
        return self.set("anonymous_id", anonymous_id)

    def timestamp_ns(self, timestamp_ns: int) -> PayloadBuilder:
        return self.set("timestamp_ns", timestamp_ns)

    def property(self, key: str, value: Any) -> PayloadBuilder:
        props = dict(self._fields.get("properties") or {})
        props[key] = value
        return self.set("properties", props)

    def trait(self, key: str, value: Any) -> PayloadBuilder:
        traits = dict(self._fields.get("traits") or {})
        traits[key] = value
        return self.set("traits", traits)

    def context_value(self, key: str, value: Any) -> PayloadBuilder:
        context = dict(self._fields.get("context") or {})
        context[key] = value
        return self.set("context", context)

    def integration(self, name: str, enabled: bool) -> PayloadBuilder:
        integrations = dict(self._fields.get("integrations") or {})
        integrations[name] = enabled
        return self.set("integrations", integrations)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> BasePayload:
        """Validate the staged fields and return a new frozen payload.

        Raises
        ------
        ValidationError
            If a rule for this type is violated, a field has the wrong
            type, or a value cannot be serialized to JSON.
        """
        fields = {
            key: _copy_value(value)
            for key, value in self._fields.items()
            if value is not None
        }
        _validate(self._type, fields)
        model_cls = PAYLOAD_TYPE_MAP[self._type]
        try:
            payload = model_cls(**fields)
            # Reject values that cannot be serialized to JSON.
            payload.model_dump(mode="json")
        except ValueError as exc:
            raise ValidationError(f"Invalid {self._type.value} payload: {exc}") from exc
        return payload


def build(
    payload_type: PayloadType | str,
    event: str | None = None,
    properties: dict[str, Any] | None = None,
    context: dict[str, Any] | None = None,
    **fields: Any,
) -> BasePayload:
    """Construct a validated payload.

    Raises
    ------
    ValidationError
        If the fields violate the rules for *payload_type* (for example a
        track payload with a blank event name).
    """
    builder = PayloadBuilder(PayloadType(payload_type))
    if event is not None:
        builder.event(event)
    if properties is not None:
        builder.set("properties", properties)
    if context is not None:
        builder.set("context", context)
    for key, value in fields.items():
        builder.set(key, value)
    return builder.build()
