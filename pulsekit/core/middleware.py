"""MiddlewareRegistry — source and destination interceptor lists."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulsekit.core.chain import Interceptor

logger = logging.getLogger(__name__)


class MiddlewareRegistry:
    """Collects interceptors in registration order.

    Source interceptors run for every payload before it is queued.
    Destination interceptors run only when the router delivers to that
    destination.  Registration order is invocation order; there is no
    priority.  Registration and retrieval share one lock; readers get
    copies.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._source: list[Interceptor] = []
        self._destination: dict[str, list[Interceptor]] = {}

    # ── Registration ─────────────────────────────────────────────

    def add_source(self, interceptor: Interceptor) -> None:
        with self._lock:
            self._source.append(interceptor)
            count = len(self._source)
        logger.debug("Registered source middleware #%d", count)

    def add_destination(self, destination: str, interceptor: Interceptor) -> None:
        if not destination or not destination.strip():
            raise ValueError("destination name must not be empty")
        with self._lock:
            interceptors = self._destination.setdefault(destination, [])
            interceptors.append(interceptor)
            count = len(interceptors)
        logger.debug("Registered destination middleware #%d for %s", count, destination)

    # ── Retrieval ────────────────────────────────────────────────

    def source(self) -> list[Interceptor]:
        """Return a copy of the source interceptor list."""
        with self._lock:
            return list(self._source)

    def for_destination(self, destination: str) -> list[Interceptor]:
        """Return a copy of *destination*'s interceptors (empty if none)."""
        with self._lock:
            return list(self._destination.get(destination, []))
