"""Transport-backed destination — serializes payloads and hands them on."""

from __future__ import annotations

import logging
from typing import Any

from pulsekit.bridge.transport import DeliveryFailure, Transport
from pulsekit.core.codec import serialize_payload
from pulsekit.models.payloads import BasePayload

logger = logging.getLogger(__name__)


class TransportDestination:
    """Delivers payloads through a ``Transport``.

    Parameters
    ----------
    key:
        Destination name, also passed to ``transport.deliver``.
    transport:
        Anything implementing ``deliver(name, bytes) -> bool``.
    nanoseconds:
        Serialize timestamps with nanosecond precision.
    required_settings:
        Setting names that ``initialize`` insists on (e.g. ``("apiKey",)``).
    """

    def __init__(
        self,
        key: str,
        transport: Transport,
        *,
        nanoseconds: bool = False,
        required_settings: tuple[str, ...] = (),
    ) -> None:
        self._key = key
        self._transport = transport
        self._nanoseconds = nanoseconds
        self._required = required_settings
        self._settings: dict[str, Any] = {}

    @property
    def key(self) -> str:
        return self._key

    @property
    def settings(self) -> dict[str, Any]:
        return dict(self._settings)

    def initialize(self, settings: dict[str, Any]) -> None:
        missing = [name for name in self._required if not settings.get(name)]
        if missing:
            raise ValueError(
                f"{self._key} is missing required settings: {', '.join(missing)}"
            )
        self._settings = dict(settings)

    def deliver(self, payload: BasePayload) -> None:
        raw = serialize_payload(payload, nanoseconds=self._nanoseconds)
        try:
            accepted = self._transport.deliver(self._key, raw)
        except Exception as exc:
            raise DeliveryFailure(self._key, f"transport error: {exc}") from exc
        if not accepted:
            raise DeliveryFailure(
                self._key, f"transport refused payload {payload.message_id}"
            )
        logger.debug("%s: delivered %s", self._key, payload.message_id)

    def __repr__(self) -> str:
        return f"TransportDestination(key={self._key!r}, transport={self._transport!r})"
