"""Dispatch queue — batches payloads and flushes them to the router.

Concurrency model
-----------------
- ``_batch_lock`` guards the current batch.  ``enqueue`` appends under it,
  and ``flush`` swaps the whole batch for an empty list under it, so
  concurrent producers never lose or duplicate a payload.
- ``_flush_lock`` makes ``flush`` mutually exclusive with itself (never with
  ``enqueue``).  Payloads enqueued while a flush is running land in the
  fresh batch and go out with the next swap.
- A size-triggered flush never waits for ``_flush_lock``.  If a flush is
  running it sets ``_flush_requested`` and returns; the running flush swaps
  again before it finishes.  The same applies when a destination or its
  middleware enqueues from inside a flush on the flushing thread.
- Ready callbacks fired by deliveries are held back until ``_flush_lock``
  is released, so a callback may call back into the client.
- ``_retry_lock`` guards the retry entries.

A flush is triggered when the batch reaches ``flush_queue_size``, when
``flush()`` is called, or every ``flush_interval`` seconds if a timer is
running.  With ``flush_async`` the size-triggered flush runs on a single
worker thread instead of the producer's thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pulsekit.models.payloads import BasePayload
from pulsekit.routing.router import RouteOutcome, RouteResult

if TYPE_CHECKING:
    from pulsekit.core.stats import StatsRecorder
    from pulsekit.routing.router import DestinationRouter

logger = logging.getLogger(__name__)


class QueueClosedError(RuntimeError):
    """Raised when enqueuing into a queue that has been shut down."""


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@runtime_checkable
class RetryPolicy(Protocol):
    """How many times, and how far apart, failed deliveries are retried."""

    max_retries: int

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number *attempt* (1-based)."""
        ...


@dataclass(frozen=True)
class ExponentialBackoff:
    """``base * factor ** (attempt - 1)`` seconds, capped at ``cap``."""

    max_retries: int = 3
    base: float = 1.0
    factor: float = 2.0
    cap: float = 60.0

    def delay(self, attempt: int) -> float:
        return min(self.cap, self.base * self.factor ** max(attempt - 1, 0))


@dataclass
class RetryEntry:
    """One failed (destination, payload) delivery awaiting another attempt."""

    destination: str
    payload: BasePayload
    attempts: int
    next_attempt_at: float


@dataclass
class FlushReport:
    """What one ``flush()`` call did."""

    batch_size: int = 0
    results: list[RouteResult] = field(default_factory=list)
    retried: int = 0
    exhausted: int = 0

    @property
    def delivered(self) -> int:
        return sum(1 for r in self.results if r.outcome == RouteOutcome.DELIVERED)

    def merge(self, other: FlushReport) -> None:
        """Fold a follow-up batch flushed in the same call into this report."""
        self.batch_size += other.batch_size
        self.results.extend(other.results)
        self.retried += other.retried
        self.exhausted += other.exhausted


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class DispatchQueue:
    """Buffers payloads and flushes them in enqueue order.

    Parameters
    ----------
    router:
        Receives every flushed payload via ``route``.
    flush_queue_size:
        Batch size that triggers a flush.  Must be at least 1.
    flush_interval:
        Seconds between timer flushes once ``start()`` is called.  ``0``
        disables the timer.
    flush_async:
        Run size-triggered flushes on a background worker thread.
    retry_policy:
        Defaults to ``ExponentialBackoff()``.
    clock:
        Monotonic clock used for retry scheduling (injectable for tests).
    """

    def __init__(
        self,
        router: DestinationRouter,
        *,
        flush_queue_size: int = 20,
        flush_interval: float = 0.0,
        flush_async: bool = False,
        retry_policy: RetryPolicy | None = None,
        stats: StatsRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if flush_queue_size < 1:
            raise ValueError(f"flush_queue_size must be at least 1, got {flush_queue_size}")
        if flush_interval < 0:
            raise ValueError(f"flush_interval must not be negative, got {flush_interval}")

        self._router = router
        self._flush_queue_size = flush_queue_size
        self._flush_interval = flush_interval
        self._retry_policy: RetryPolicy = retry_policy or ExponentialBackoff()
        self._stats = stats
        self._clock = clock

        self._batch_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._retry_lock = threading.Lock()
        self._batch: list[BasePayload] = []
        self._retries: list[RetryEntry] = []
        self._flush_requested = False
        self._flush_owner: int | None = None
        self._closed = False

        self._executor: ThreadPoolExecutor | None = None
        if flush_async:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="pulsekit-flush"
            )

        self._stop = threading.Event()
        self._timer: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def flush_queue_size(self) -> int:
        return self._flush_queue_size

    @property
    def pending(self) -> int:
        """Payloads waiting in the current batch."""
        with self._batch_lock:
            return len(self._batch)

    @property
    def retry_pending(self) -> int:
        """Failed deliveries waiting for another attempt."""
        with self._retry_lock:
            return len(self._retries)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def enqueue(self, payload: BasePayload) -> None:
        """Append *payload*; flush if the batch reached its threshold.

        Never waits for a flush that is already running: the running flush
        picks the new batch up before it returns.

        Raises
        ------
        QueueClosedError
            After ``shutdown()``.
        """
        with self._batch_lock:
            if self._closed:
                raise QueueClosedError("Cannot enqueue messages after client is shutdown.")
            self._batch.append(payload)
            size = len(self._batch)

        if self._stats is not None:
            self._stats.record_enqueued()
        logger.debug("Enqueued %s (batch=%d/%d)", payload.message_id, size, self._flush_queue_size)

        if size >= self._flush_queue_size:
            self._trigger_flush()

    def _trigger_flush(self) -> None:
        if self._executor is not None:
            self._executor.submit(self._flush_logged)
        else:
            self._request_flush()

    def _flush_logged(self) -> None:
        try:
            self._request_flush()
        except Exception:
            logger.exception("Background flush failed")

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def flush(self) -> FlushReport:
        """Swap out the current batch and route every payload in it.

        Due retries are re-delivered first.  Only one flush runs at a time;
        a second caller waits for the first to finish.  Called from inside
        a running flush (by a destination or its middleware), the request
        is handed to that flush and an empty report is returned.
        """
        if self._flush_owner == threading.get_ident():
            self._flush_requested = True
            return FlushReport()
        with self._router.deferred_readiness():
            with self._flush_lock:
                report = self._flush_locked()
            if self._flush_requested:
                self._request_flush()
        return report

    def _request_flush(self) -> None:
        """Flush now, or leave the work to the flush already running."""
        self._flush_requested = True
        if self._flush_owner == threading.get_ident():
            return
        with self._router.deferred_readiness():
            # The holder re-checks the flag after releasing the lock, so a
            # request made while it finishes is never lost.
            while self._flush_requested and self._flush_lock.acquire(blocking=False):
                try:
                    self._flush_locked()
                finally:
                    self._flush_lock.release()

    def _flush_locked(self, *, drain: bool = False) -> FlushReport:
        self._flush_owner = threading.get_ident()
        try:
            self._flush_requested = False
            report = self._flush_batch(drain=drain)
            while self._flush_requested:
                self._flush_requested = False
                report.merge(self._flush_batch(drain=drain))
            return report
        finally:
            self._flush_owner = None

    def _flush_batch(self, *, drain: bool) -> FlushReport:
        with self._batch_lock:
            batch, self._batch = self._batch, []

        report = FlushReport(batch_size=len(batch))
        self._process_retries(report, force=drain)

        for payload in batch:
            for result in self._router.route(payload):
                report.results.append(result)
                if result.retryable and result.payload is not None:
                    self._schedule_retry(result.destination, result.payload, 1, report)

        if drain:
            # Every remaining retry gets its attempts now, backoff or not.
            while self.retry_pending:
                self._process_retries(report, force=True)

        if batch:
            if self._stats is not None:
                self._stats.record_flush(len(batch))
            self._router.flush_destinations()
            logger.info(
                "Flushed %d payload(s): %d delivery(ies), %d retry(ies) pending",
                len(batch),
                report.delivered,
                self.retry_pending,
            )
        return report

    def _process_retries(self, report: FlushReport, *, force: bool = False) -> None:
        now = self._clock()
        with self._retry_lock:
            if force:
                due, self._retries = self._retries, []
            else:
                due = [entry for entry in self._retries if entry.next_attempt_at <= now]
                self._retries = [entry for entry in self._retries if entry.next_attempt_at > now]

        for entry in due:
            report.retried += 1
            if self._stats is not None:
                self._stats.record_retry()
            result = self._router.deliver(entry.destination, entry.payload)
            report.results.append(result)
            if result.retryable:
                self._schedule_retry(entry.destination, entry.payload, entry.attempts + 1, report)

    def _schedule_retry(
        self, destination: str, payload: BasePayload, attempt: int, report: FlushReport
    ) -> None:
        if attempt > self._retry_policy.max_retries:
            report.exhausted += 1
            if self._stats is not None:
                self._stats.record_retry_exhausted()
            logger.error(
                "Giving up on payload %s for %s after %d attempt(s)",
                payload.message_id,
                destination,
                attempt,
            )
            return
        delay = self._retry_policy.delay(attempt)
        with self._retry_lock:
            self._retries.append(
                RetryEntry(destination, payload, attempt, self._clock() + delay)
            )
        logger.warning(
            "Delivery of %s to %s failed; retry %d/%d in %.1fs",
            payload.message_id,
            destination,
            attempt,
            self._retry_policy.max_retries,
            delay,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush timer (no-op when the interval is 0)."""
        if self._flush_interval <= 0 or self._timer is not None:
            return
        self._timer = threading.Thread(
            target=self._run_timer, name="pulsekit-flush-timer", daemon=True
        )
        self._timer.start()
        logger.debug("Flush timer started (interval=%.1fs)", self._flush_interval)

    def _run_timer(self) -> None:
        while not self._stop.wait(self._flush_interval):
            try:
                self.flush()
            except Exception:
                logger.exception("Timer flush failed")

    def shutdown(self) -> FlushReport | None:
        """Stop accepting payloads and drain what is buffered.

        Pending retries are attempted immediately, ignoring their backoff,
        until each one is delivered or has used up ``max_retries``.
        Idempotent: the second call returns ``None``.
        """
        with self._batch_lock:
            if self._closed:
                return None
            self._closed = True

        self._stop.set()
        if self._timer is not None:
            self._timer.join()
            self._timer = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        with self._router.deferred_readiness():
            with self._flush_lock:
                report = self._flush_locked(drain=True)
        logger.info(
            "Dispatch queue shut down (drained %d payload(s), gave up on %d)",
            report.batch_size,
            report.exhausted,
        )
        return report
