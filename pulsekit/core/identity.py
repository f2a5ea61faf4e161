"""Identity store — who the events are about.

Holds the anonymous id (generated once per store, regenerated on reset),
the identified user id, and accumulated traits.  ``identify`` merges
traits; ``reset`` forgets everything.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any


class IdentityStore:
    """Thread-safe user identity for one client instance."""

    def __init__(self, anonymous_id: str | None = None) -> None:
        self._lock = threading.Lock()
        self._anonymous_id = anonymous_id or str(uuid.uuid4())
        self._user_id = ""
        self._traits: dict[str, Any] = {}

    @property
    def anonymous_id(self) -> str:
        with self._lock:
            return self._anonymous_id

    @property
    def user_id(self) -> str:
        with self._lock:
            return self._user_id

    @property
    def traits(self) -> dict[str, Any]:
        """Return a copy of the accumulated traits."""
        with self._lock:
            return dict(self._traits)

    def identify(self, user_id: str | None, traits: dict[str, Any] | None = None) -> dict[str, Any]:
        """Record *user_id* (when given) and merge *traits*.

        Returns the merged traits.
        """
        with self._lock:
            if user_id:
                self._user_id = user_id
            if traits:
                self._traits.update(traits)
            return dict(self._traits)

    def alias(self, new_id: str) -> str:
        """Switch to *new_id*; return the id it replaces.

        The previous id is the identified user id if there is one, else the
        anonymous id.
        """
        with self._lock:
            previous = self._user_id or self._anonymous_id
            self._user_id = new_id
            return previous

    def reset(self) -> None:
        """Forget the user: clear user id and traits, new anonymous id."""
        with self._lock:
            self._anonymous_id = str(uuid.uuid4())
            self._user_id = ""
            self._traits = {}
