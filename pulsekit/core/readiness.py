"""Integration readiness registry.

Tracks the lifecycle of each destination (``unknown -> initializing ->
{ready, failed}``) and fires ``on_ready`` callbacks exactly once:

- registered before the destination is ready: stored, fired on transition;
- registered after: fired immediately, on the caller's thread.

Registration and transitions are serialized by one lock, so a callback is
never both pending and already fired.  Callbacks run outside the lock.

Inside a ``deferred_callbacks()`` block, callbacks released by a
transition are queued and run when the outermost block exits.  The
dispatch queue wraps every flush in one, so callbacks never run while
the flush lock is held.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from pulsekit.models.destinations import (
    VALID_TRANSITIONS,
    DestinationState,
    DestinationTransition,
)
from pulsekit.models.payloads import ValidationError

logger = logging.getLogger(__name__)

ReadyCallback = Callable[[Any], None]


class InvalidTransitionError(RuntimeError):
    """Raised when a requested readiness transition is not valid."""


class IntegrationReadinessRegistry:
    """Per-destination readiness state plus pending ready-callbacks.

    One registry belongs to one client instance.  Re-initializing
    destinations means building a new client (and a new registry), never
    rewinding a terminal state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[str, DestinationState] = {}
        self._instances: dict[str, Any] = {}
        self._pending: dict[str, list[ReadyCallback]] = {}
        self._history: list[DestinationTransition] = []
        self._holds = 0
        self._deferred: list[tuple[str, ReadyCallback, Any]] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self, name: str) -> DestinationState:
        with self._lock:
            return self._states.get(name, DestinationState.UNKNOWN)

    def get_all_states(self) -> dict[str, DestinationState]:
        """Return a snapshot of every known destination's state."""
        with self._lock:
            return dict(self._states)

    def is_ready(self, name: str) -> bool:
        return self.get_state(name) == DestinationState.READY

    def pending_count(self, name: str) -> int:
        with self._lock:
            return len(self._pending.get(name, []))

    @property
    def history(self) -> list[DestinationTransition]:
        """All transitions recorded so far, oldest first."""
        with self._lock:
            return list(self._history)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_ready(self, name: str, callback: ReadyCallback) -> None:
        """Invoke *callback* once *name* is ready (immediately if it already is).

        Callbacks for a destination that failed are discarded with a
        warning.

        Raises
        ------
        ValidationError
            If *name* is empty.
        """
        if not name or not name.strip():
            raise ValidationError("key cannot be null or empty.")

        with self._lock:
            state = self._states.get(name, DestinationState.UNKNOWN)
            if state == DestinationState.FAILED:
                logger.warning(
                    "Destination %s failed to initialize; ready callback discarded",
                    name,
                )
                return
            if state != DestinationState.READY:
                self._pending.setdefault(name, []).append(callback)
                return
            instance = self._instances.get(name)

        self._invoke(name, callback, instance)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_initializing(self, name: str) -> DestinationTransition:
        transition, _ = self._transition(name, DestinationState.INITIALIZING)
        return transition

    def mark_ready(self, name: str, instance: Any = None) -> DestinationTransition:
        """Transition *name* to READY and fire its pending callbacks."""
        transition, callbacks = self._transition(
            name, DestinationState.READY, instance=instance
        )
        with self._lock:
            if self._holds:
                self._deferred.extend((name, callback, instance) for callback in callbacks)
                return transition
        for callback in callbacks:
            self._invoke(name, callback, instance)
        return transition

    def mark_failed(self, name: str, reason: str = "") -> DestinationTransition:
        """Transition *name* to FAILED, discarding pending callbacks."""
        transition, callbacks = self._transition(
            name, DestinationState.FAILED, reason=reason
        )
        if callbacks:
            logger.warning(
                "Destination %s failed (%s); discarded %d ready callback(s)",
                name,
                reason or "no reason given",
                len(callbacks),
            )
        return transition

    def ensure_ready(self, name: str, instance: Any = None) -> bool:
        """Mark *name* ready unless it is already terminal.

        Returns ``True`` if this call performed the transition.
        """
        with self._lock:
            state = self._states.get(name, DestinationState.UNKNOWN)
            if state in (DestinationState.READY, DestinationState.FAILED):
                return False
        try:
            self.mark_ready(name, instance)
        except InvalidTransitionError:
            # Lost a race with another transition; the winner fired callbacks.
            return False
        return True

    @contextmanager
    def deferred_callbacks(self) -> Iterator[None]:
        """Queue ready callbacks released inside the block; run them on exit."""
        with self._lock:
            self._holds += 1
        try:
            yield
        finally:
            with self._lock:
                self._holds -= 1
                released: list[tuple[str, ReadyCallback, Any]] = []
                if self._holds == 0:
                    released, self._deferred = self._deferred, []
            for name, callback, instance in released:
                self._invoke(name, callback, instance)

    def _transition(
        self,
        name: str,
        target: DestinationState,
        *,
        instance: Any = None,
        reason: str | None = None,
    ) -> tuple[DestinationTransition, list[ReadyCallback]]:
        with self._lock:
            current = self._states.get(name, DestinationState.UNKNOWN)
            allowed = VALID_TRANSITIONS.get(current, set())
            if target not in allowed:
                raise InvalidTransitionError(
                    f"Cannot transition {name} from {current.value} to {target.value}. "
                    f"Allowed: {sorted(s.value for s in allowed)}"
                )
            self._states[name] = target
            if instance is not None:
                self._instances[name] = instance

            callbacks: list[ReadyCallback] = []
            if target in (DestinationState.READY, DestinationState.FAILED):
                callbacks = self._pending.pop(name, [])

            transition = DestinationTransition(
                destination=name, from_state=current, to_state=target, reason=reason
            )
            self._history.append(transition)

        logger.info("Destination %s: %s -> %s", name, current.value, target.value)
        return transition, callbacks

    @staticmethod
    def _invoke(name: str, callback: ReadyCallback, instance: Any) -> None:
        try:
            callback(instance)
        except Exception:
            logger.exception("Ready callback for %s raised", name)
