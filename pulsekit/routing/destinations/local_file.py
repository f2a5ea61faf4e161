"""Local file destination — writes payloads to local JSON files.

Layout: {base_path}/{type}/{message_id}.json

Each payload is serialized to canonical JSON and stored in a directory per
payload type, so a run of the demo can be inspected by hand.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pulsekit.core.codec import serialize_payload
from pulsekit.models.payloads import BasePayload

logger = logging.getLogger(__name__)


class LocalFileDestination:
    """Writes payloads to local JSON files.

    Parameters
    ----------
    base_path:
        Root directory for event files.  Defaults to ``.pulsekit/events``.
    key:
        Destination name.  Defaults to ``"local_file"``.
    """

    def __init__(
        self,
        base_path: Path | str | None = None,
        *,
        key: str = "local_file",
        nanoseconds: bool = False,
    ) -> None:
        self._base = Path(base_path) if base_path else Path(".pulsekit/events")
        self._key = key
        self._nanoseconds = nanoseconds

    @property
    def key(self) -> str:
        return self._key

    @property
    def base_path(self) -> Path:
        return self._base

    def initialize(self, settings: dict[str, Any]) -> None:
        self._base.mkdir(parents=True, exist_ok=True)

    def deliver(self, payload: BasePayload) -> None:
        """Write the payload to ``{base_path}/{type}/{message_id}.json``."""
        target_dir = self._base / payload.type.value
        target_dir.mkdir(parents=True, exist_ok=True)

        target_file = target_dir / f"{payload.message_id}.json"
        target_file.write_bytes(
            serialize_payload(payload, nanoseconds=self._nanoseconds)
        )

        logger.debug(
            "LocalFileDestination: wrote %s to %s", payload.message_id, target_file
        )

    def list_events(self, payload_type: str | None = None) -> list[Path]:
        """List written payload files, optionally for one payload type."""
        if not self._base.exists():
            return []

        if payload_type:
            type_dir = self._base / payload_type
            if not type_dir.exists():
                return []
            return sorted(type_dir.glob("*.json"))

        return sorted(self._base.rglob("*.json"))

    def read_event(self, path: Path) -> dict:
        """Read and parse a single payload file."""
        return json.loads(path.read_bytes())
