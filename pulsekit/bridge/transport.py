"""Delivery transports — where serialized payloads leave the pipeline.

A transport implements one call::

    deliver(destination_name, serialized_payload) -> bool

``True`` means the transport accepted the payload; ``False`` (or an
exception) is a delivery failure that the dispatch queue routes to its
retry path.  Network transports are outside this package; two local
transports ship with it:

1. ``InMemoryTransport`` — records every delivery; for tests and demos.
2. ``LocalQueueTransport`` — a bounded outbox, backed either by an
   in-memory deque (volatile) or by a SQLite table (``queue_db_path``
   given; survives restart).  A full queue refuses delivery.
"""

from __future__ import annotations

import collections
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class DeliveryFailure(RuntimeError):
    """Raised when a destination could not hand a payload to its transport."""

    def __init__(self, destination: str, message: str) -> None:
        self.destination = destination
        super().__init__(f"{destination}: {message}")


@runtime_checkable
class Transport(Protocol):
    """Protocol every delivery transport implements."""

    def deliver(self, destination_name: str, serialized_payload: bytes) -> bool:
        """Hand one serialized payload to *destination_name*."""
        ...


# ---------------------------------------------------------------------------
# In-memory recording transport
# ---------------------------------------------------------------------------


class InMemoryTransport:
    """Accepts everything and remembers it, in delivery order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._deliveries: list[tuple[str, bytes]] = []

    def deliver(self, destination_name: str, serialized_payload: bytes) -> bool:
        with self._lock:
            self._deliveries.append((destination_name, serialized_payload))
        return True

    @property
    def deliveries(self) -> list[tuple[str, bytes]]:
        """Return a copy of every ``(destination, payload)`` delivered."""
        with self._lock:
            return list(self._deliveries)

    def for_destination(self, destination_name: str) -> list[bytes]:
        with self._lock:
            return [raw for name, raw in self._deliveries if name == destination_name]

    def clear(self) -> None:
        with self._lock:
            self._deliveries.clear()


# ---------------------------------------------------------------------------
# Bounded local queue transport
# ---------------------------------------------------------------------------


class LocalQueueTransport:
    """Bounded outbox of delivered payloads.

    Parameters
    ----------
    max_depth:
        Maximum number of payloads held (both backends).  Deliveries
        beyond it are refused.
    queue_db_path:
        Path to a SQLite database file for persistent storage.  When
        ``None``, an in-memory deque is used (volatile).
    """

    def __init__(
        self,
        *,
        max_depth: int = 1024,
        queue_db_path: Path | None = None,
    ) -> None:
        self._max_depth = max_depth
        self._lock = threading.Lock()

        # SQLite backend (persistent local)
        self._db: sqlite3.Connection | None = None
        if queue_db_path is not None:
            self._db = sqlite3.connect(str(queue_db_path), check_same_thread=False)
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS outbox ("
                "  id INTEGER PRIMARY KEY AUTOINCREMENT,"
                "  destination TEXT NOT NULL,"
                "  payload BLOB NOT NULL,"
                "  created_at TEXT DEFAULT (datetime('now'))"
                ")"
            )
            self._db.commit()
            logger.info(
                "LocalQueueTransport: using SQLite outbox at %s (max_depth=%d).",
                queue_db_path,
                max_depth,
            )
        else:
            logger.info(
                "LocalQueueTransport: using in-memory outbox (max_depth=%d).",
                max_depth,
            )

        # In-memory deque (volatile local)
        self._queue: collections.deque[tuple[str, bytes]] = collections.deque()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_persistent(self) -> bool:
        return self._db is not None

    @property
    def depth(self) -> int:
        """Number of payloads waiting in the outbox."""
        with self._lock:
            return self._depth_locked()

    # ------------------------------------------------------------------
    # Transport API
    # ------------------------------------------------------------------

    def deliver(self, destination_name: str, serialized_payload: bytes) -> bool:
        """Append to the outbox; ``False`` when it is full."""
        with self._lock:
            depth = self._depth_locked()
            if depth >= self._max_depth:
                logger.warning(
                    "LocalQueueTransport: outbox full (depth=%d); refusing %s payload.",
                    depth,
                    destination_name,
                )
                return False

            if self._db is not None:
                self._db.execute(
                    "INSERT INTO outbox (destination, payload) VALUES (?, ?)",
                    (destination_name, serialized_payload),
                )
                self._db.commit()
            else:
                self._queue.append((destination_name, serialized_payload))

        logger.debug(
            "LocalQueueTransport: queued %s payload (depth=%d).",
            destination_name,
            depth + 1,
        )
        return True

    def receive(self) -> tuple[str, bytes] | None:
        """Dequeue the oldest ``(destination, payload)``, or ``None``."""
        with self._lock:
            if self._db is not None:
                row = self._db.execute(
                    "SELECT id, destination, payload FROM outbox ORDER BY id LIMIT 1"
                ).fetchone()
                if row is None:
                    return None
                row_id, destination, payload = row
                self._db.execute("DELETE FROM outbox WHERE id = ?", (row_id,))
                self._db.commit()
                return destination, bytes(payload)

            if self._queue:
                return self._queue.popleft()
            return None

    def drain(self, *, max_messages: int = 100) -> list[tuple[str, bytes]]:
        """Dequeue up to *max_messages* payloads, oldest first."""
        messages: list[tuple[str, bytes]] = []
        for _ in range(max_messages):
            msg = self.receive()
            if msg is None:
                break
            messages.append(msg)
        return messages

    def close(self) -> None:
        """Release the SQLite connection, if any, and clear the deque."""
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None
            self._queue.clear()
        logger.info("LocalQueueTransport: closed.")

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> LocalQueueTransport:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        backend = "sqlite" if self._db is not None else "memory"
        return f"LocalQueueTransport(max_depth={self._max_depth}, backend={backend})"

    def _depth_locked(self) -> int:
        if self._db is not None:
            row = self._db.execute("SELECT COUNT(*) FROM outbox").fetchone()
            return row[0] if row else 0
        return len(self._queue)
