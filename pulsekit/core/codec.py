"""JSON codec for payloads.

Payloads travel as JSON objects with camelCase keys.  Timestamps are
ISO-8601 UTC strings with millisecond precision, or nanosecond precision
when the client enables ``experimental_nanosecond_timestamps``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pulsekit.models.payloads import PAYLOAD_TYPE_MAP, BasePayload, PayloadType

_NS_PER_SECOND = 1_000_000_000
_ISO_SECONDS = "%Y-%m-%dT%H:%M:%S"

# snake_case model field -> wire key
_WIRE_KEYS: dict[str, str] = {
    "message_id": "messageId",
    "anonymous_id": "anonymousId",
    "user_id": "userId",
    "group_id": "groupId",
    "previous_id": "previousId",
}
_FIELD_NAMES: dict[str, str] = {wire: field for field, wire in _WIRE_KEYS.items()}


class CodecError(ValueError):
    """Raised when raw bytes cannot be decoded into a payload."""


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def to_json(obj: Any, *, pretty: bool = False) -> str:
    """Encode *obj* as JSON text, preserving key order.

    ``pretty=True`` indents nested objects by two spaces.
    """
    if pretty:
        return json.dumps(obj, indent=2, ensure_ascii=False)
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def from_json(text: str | bytes) -> dict[str, Any]:
    """Decode a JSON object, rejecting anything that is not a mapping."""
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CodecError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CodecError(f"Expected a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def format_timestamp(timestamp_ns: int, *, nanoseconds: bool = False) -> str:
    """Format epoch nanoseconds as ``YYYY-MM-DDTHH:MM:SS.fffZ``.

    With *nanoseconds* the fraction has nine digits instead of three.
    """
    seconds, remainder = divmod(timestamp_ns, _NS_PER_SECOND)
    base = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(_ISO_SECONDS)
    if nanoseconds:
        return f"{base}.{remainder:09d}Z"
    return f"{base}.{remainder // 1_000_000:03d}Z"


def parse_timestamp(value: str) -> int:
    """Parse a timestamp produced by ``format_timestamp`` back to nanoseconds."""
    try:
        base, _, fraction = value.rstrip("Z").partition(".")
        moment = datetime.strptime(base, _ISO_SECONDS).replace(tzinfo=timezone.utc)
        digits = (fraction or "0")[:9].ljust(9, "0")
        return int(moment.timestamp()) * _NS_PER_SECOND + int(digits)
    except ValueError as exc:
        raise CodecError(f"Invalid timestamp: {value!r}") from exc


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


def payload_to_wire(payload: BasePayload, *, nanoseconds: bool = False) -> dict[str, Any]:
    """Convert a payload to its JSON-ready wire mapping."""
    data = payload.model_dump(mode="json")
    timestamp_ns = data.pop("timestamp_ns")
    wire: dict[str, Any] = {}
    for key, value in data.items():
        wire[_WIRE_KEYS.get(key, key)] = value
    wire["timestamp"] = format_timestamp(timestamp_ns, nanoseconds=nanoseconds)
    return wire


def serialize_payload(payload: BasePayload, *, nanoseconds: bool = False) -> bytes:
    """Serialize a payload to canonical JSON bytes."""
    return canonical_json_bytes(payload_to_wire(payload, nanoseconds=nanoseconds))


def deserialize_payload(raw: bytes | str) -> BasePayload:
    """Decode wire bytes back into the matching payload model.

    Raises
    ------
    CodecError
        If the JSON is malformed, the type is unknown, or the fields do
        not validate.
    """
    data = from_json(raw)

    type_str = data.get("type")
    if not type_str:
        raise CodecError("Missing type field")
    try:
        payload_type = PayloadType(type_str)
    except ValueError as exc:
        raise CodecError(f"Unknown payload type: {type_str!r}") from exc

    fields: dict[str, Any] = {}
    for key, value in data.items():
        if key == "timestamp":
            fields["timestamp_ns"] = parse_timestamp(value)
        else:
            fields[_FIELD_NAMES.get(key, key)] = value

    model_cls = PAYLOAD_TYPE_MAP[payload_type]
    try:
        return model_cls.model_validate(fields)
    except Exception as exc:
        raise CodecError(f"Payload validation failed: {exc}") from exc
