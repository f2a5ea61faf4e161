"""DestinationRouter — replays payloads through per-destination chains.

Every payload handed to ``route`` is offered to every registered
destination, in registration order.  For each destination the router
builds a fresh chain from that destination's middleware, ending at the
destination's ``deliver``.  A payload dropped, rejected, or failing for
one destination is still offered to the next.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pulsekit.core.chain import ChainOutcome, run_chain
from pulsekit.models.destinations import DestinationState
from pulsekit.models.payloads import BasePayload
from pulsekit.routing.plan import skip_reason

if TYPE_CHECKING:
    from pulsekit.core.middleware import MiddlewareRegistry
    from pulsekit.core.readiness import IntegrationReadinessRegistry
    from pulsekit.core.stats import StatsRecorder
    from pulsekit.models.project import TrackingPlan
    from pulsekit.routing.destinations import Destination

logger = logging.getLogger(__name__)


class RouteOutcome(str, Enum):
    """What happened to one payload at one destination."""

    DELIVERED = "delivered"
    DROPPED = "dropped"  # middleware short-circuited or failed
    SKIPPED = "skipped"  # filtered before the chain ran
    FAILED = "failed"  # destination refused delivery


@dataclass(frozen=True)
class RouteResult:
    """Outcome for one (payload, destination) pair.

    For ``FAILED`` results ``payload`` is the post-middleware payload, so
    a retry can re-deliver it without running middleware again.
    """

    destination: str
    outcome: RouteOutcome
    payload: BasePayload | None = None
    error: Exception | None = None
    reason: str | None = None

    @property
    def retryable(self) -> bool:
        return self.outcome == RouteOutcome.FAILED


class DestinationRouter:
    """Fans payloads out to registered destinations.

    Usage
    -----
    >>> router = DestinationRouter(middleware)
    >>> router.register_destination(collector)
    >>> results = router.route(payload)
    """

    def __init__(
        self,
        middleware: MiddlewareRegistry,
        *,
        readiness: IntegrationReadinessRegistry | None = None,
        stats: StatsRecorder | None = None,
        plan: TrackingPlan | None = None,
    ) -> None:
        self._middleware = middleware
        self._readiness = readiness
        self._stats = stats
        self._plan = plan
        self._destinations: list[Destination] = []

    # ------------------------------------------------------------------
    # Destination management
    # ------------------------------------------------------------------

    def register_destination(self, destination: Destination) -> None:
        """Register a destination.  Keys must be unique.

        Destinations are offered payloads in registration order.
        """
        if any(d.key == destination.key for d in self._destinations):
            raise ValueError(f"Destination {destination.key!r} is already registered")
        self._destinations.append(destination)
        logger.info("Registered destination: %s", destination.key)

    def unregister_destination(self, key: str) -> None:
        """Remove a previously registered destination."""
        before = len(self._destinations)
        self._destinations = [d for d in self._destinations if d.key != key]
        if len(self._destinations) != before:
            logger.info("Unregistered destination: %s", key)

    @property
    def registered_destinations(self) -> list[Destination]:
        """Return a copy of the registered destination list."""
        return list(self._destinations)

    def get(self, key: str) -> Destination | None:
        for destination in self._destinations:
            if destination.key == key:
                return destination
        return None

    def set_plan(self, plan: TrackingPlan | None) -> None:
        self._plan = plan

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, payload: BasePayload) -> list[RouteResult]:
        """Offer *payload* to every destination.  Never raises per destination."""
        if not self._destinations:
            logger.warning("No destinations registered — payload %s dropped", payload.message_id)
            return []
        return [self._route_one(destination, payload) for destination in self._destinations]

    def deliver(self, key: str, payload: BasePayload) -> RouteResult:
        """Re-deliver an already-chained payload to one destination."""
        destination = self.get(key)
        if destination is None:
            return self._record(
                RouteResult(key, RouteOutcome.SKIPPED, reason="destination no longer registered")
            )
        try:
            destination.deliver(payload)
        except Exception as exc:  # noqa: BLE001
            logger.error("Destination %s failed for payload %s: %s", key, payload.message_id, exc)
            return self._record(RouteResult(key, RouteOutcome.FAILED, payload, exc))
        self._mark_ready(destination)
        return self._record(RouteResult(key, RouteOutcome.DELIVERED, payload))

    def _route_one(self, destination: Destination, payload: BasePayload) -> RouteResult:
        key = destination.key

        if self._readiness is not None and self._readiness.get_state(key) == DestinationState.FAILED:
            return self._record(
                RouteResult(key, RouteOutcome.SKIPPED, reason="destination failed to initialize")
            )

        reason = skip_reason(payload, key, self._plan)
        if reason is not None:
            logger.debug("Payload %s skipped for %s: %s", payload.message_id, key, reason)
            return self._record(RouteResult(key, RouteOutcome.SKIPPED, reason=reason))

        handed_off: list[BasePayload] = []

        def _terminal(final: BasePayload) -> None:
            handed_off.append(final)
            destination.deliver(final)

        # Each destination chain works on its own deep copy.
        try:
            result = run_chain(
                payload.model_copy(deep=True),
                self._middleware.for_destination(key),
                _terminal,
                label=key,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Destination %s failed for payload %s: %s", key, payload.message_id, exc
            )
            return self._record(RouteResult(key, RouteOutcome.FAILED, handed_off[-1], exc))

        if result.outcome == ChainOutcome.DELIVERED:
            self._mark_ready(destination)
            return self._record(RouteResult(key, RouteOutcome.DELIVERED, result.payload))
        return self._record(
            RouteResult(
                key,
                RouteOutcome.DROPPED,
                error=result.error,
                reason="middleware failed" if result.error else "middleware short-circuited",
            )
        )

    # ------------------------------------------------------------------
    # Destination hooks
    # ------------------------------------------------------------------

    def flush_destinations(self) -> None:
        """Call ``flush()`` on destinations that have one."""
        self._call_hook("flush")

    def reset_destinations(self) -> None:
        """Call ``reset()`` on destinations that have one."""
        self._call_hook("reset")

    def _call_hook(self, name: str) -> None:
        for destination in self._destinations:
            hook = getattr(destination, name, None)
            if not callable(hook):
                continue
            try:
                hook()
            except Exception:
                logger.exception("Destination %s: %s() raised", destination.key, name)

    def deferred_readiness(self) -> AbstractContextManager[None]:
        """Hold ready callbacks fired by deliveries until the block exits."""
        if self._readiness is None:
            return nullcontext()
        return self._readiness.deferred_callbacks()

    def _mark_ready(self, destination: Destination) -> None:
        if self._readiness is not None:
            self._readiness.ensure_ready(destination.key, destination)

    def _record(self, result: RouteResult) -> RouteResult:
        if self._stats is not None:
            self._stats.record_outcome(result.destination, result.outcome.value)
        return result
