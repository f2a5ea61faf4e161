"""Destination protocol for pulsekit routing.

All destinations implement the ``Destination`` protocol: a ``key``
property and a ``deliver(payload)`` method.  The router calls ``deliver``
once per payload that survives the destination's middleware chain.

Optional hooks, detected by attribute:

- ``initialize(settings)`` — called once at configure time with the
  destination's project settings.  Raising marks the destination failed.
- ``flush()`` — called after every queue flush.
- ``reset()`` — called when the client resets user identity.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pulsekit.models.payloads import BasePayload


@runtime_checkable
class Destination(Protocol):
    """Protocol that every pulsekit destination must implement.

    Attributes
    ----------
    key : str
        The destination's unique name (e.g. ``"Pulse.io"``).  Destination
        middleware, per-call integration flags and readiness callbacks all
        refer to it.
    """

    @property
    def key(self) -> str:
        """Return the unique name of this destination."""
        ...

    def deliver(self, payload: BasePayload) -> None:
        """Deliver one payload.

        Raise ``DeliveryFailure`` (or any exception) when the payload was
        not accepted; the dispatch queue schedules a retry.
        """
        ...
