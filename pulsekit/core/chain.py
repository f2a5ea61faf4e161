"""Middleware chain engine.

Runs one payload through an ordered list of interceptors.  Each
interceptor receives a single-use ``Chain`` and decides what happens next:

- ``chain.proceed(payload)`` forwards (optionally a modified copy) to the
  next interceptor, or to the terminal sink after the last one;
- returning without proceeding drops the payload for this chain, silently;
- raising drops the payload too, but the failure is logged and reported
  in the ``ChainResult``.

Interceptor failures never escape ``run_chain``.  Exceptions raised by the
terminal sink itself do: the sink is delivery, not middleware, and the
caller decides what a delivery failure means.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Union, runtime_checkable

from pulsekit.models.payloads import BasePayload

logger = logging.getLogger(__name__)


class ChainReuseError(RuntimeError):
    """Raised when ``proceed`` is called twice, or after the interceptor returned."""


class InterceptorFailure(RuntimeError):
    """Wraps an exception raised by an interceptor."""

    def __init__(self, interceptor: str, cause: BaseException) -> None:
        self.interceptor = interceptor
        self.cause = cause
        super().__init__(f"Interceptor {interceptor} failed: {cause}")


@runtime_checkable
class Middleware(Protocol):
    """The single capability every interceptor object provides."""

    def intercept(self, chain: Chain) -> None:
        """Inspect ``chain.payload`` and call ``chain.proceed`` to forward it."""
        ...


Interceptor = Union[Middleware, Callable[["Chain"], None]]
TerminalSink = Callable[[BasePayload], None]


class ChainOutcome(str, Enum):
    """How a traversal ended."""

    DELIVERED = "delivered"  # terminal sink received the payload
    DROPPED = "dropped"  # an interceptor short-circuited
    FAILED = "failed"  # an interceptor raised before the terminal sink


@dataclass(frozen=True)
class ChainResult:
    """Outcome of one traversal."""

    outcome: ChainOutcome
    payload: BasePayload | None = None
    error: Exception | None = None
    interceptor: str | None = None

    @property
    def delivered(self) -> bool:
        return self.outcome == ChainOutcome.DELIVERED


def interceptor_name(interceptor: Interceptor) -> str:
    """Best-effort readable name for logs."""
    name = getattr(interceptor, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(interceptor, "__name__", type(interceptor).__name__)


class _TerminalSinkError(Exception):
    """Carries a terminal-sink exception through the interceptor frames."""

    def __init__(self, original: Exception) -> None:
        super().__init__(str(original))
        self.original = original


class _Traversal:
    """Mutable state shared by every Chain of one ``run_chain`` call."""

    def __init__(
        self,
        middlewares: Sequence[Interceptor],
        terminal: TerminalSink,
        label: str,
    ) -> None:
        self.middlewares = tuple(middlewares)
        self.terminal = terminal
        self.label = label
        self.delivered_payload: BasePayload | None = None
        self.error: Exception | None = None
        self.failed_interceptor: str | None = None


class Chain:
    """One position in a traversal.  Single use.

    Interceptors must not keep a reference to the chain after returning;
    a late ``proceed`` raises ``ChainReuseError``.
    """

    def __init__(self, traversal: _Traversal, index: int, payload: BasePayload) -> None:
        self._traversal = traversal
        self._index = index
        self._payload = payload
        self._proceeded = False
        self._closed = False

    @property
    def payload(self) -> BasePayload:
        """The payload as this interceptor received it."""
        return self._payload

    @property
    def label(self) -> str:
        """Which chain this is (``"source"`` or a destination name)."""
        return self._traversal.label

    def proceed(self, payload: BasePayload | None = None) -> None:
        """Forward *payload* (default: the unmodified one) down the chain."""
        if self._closed:
            raise ChainReuseError(
                f"Chain position {self._index} of {self.label!r} is no longer active"
            )
        if self._proceeded:
            raise ChainReuseError(
                f"proceed() already called at position {self._index} of {self.label!r}"
            )
        self._proceeded = True
        forwarded = self._payload if payload is None else payload
        _advance(self._traversal, self._index + 1, forwarded)

    def _close(self) -> None:
        self._closed = True


def _advance(traversal: _Traversal, index: int, payload: BasePayload) -> None:
    """Invoke position *index*, or the terminal sink past the end."""
    if index >= len(traversal.middlewares):
        try:
            traversal.terminal(payload)
        except Exception as exc:
            raise _TerminalSinkError(exc) from exc
        traversal.delivered_payload = payload
        return

    interceptor = traversal.middlewares[index]
    chain = Chain(traversal, index, payload)
    try:
        if isinstance(interceptor, Middleware):
            interceptor.intercept(chain)
        else:
            interceptor(chain)
    except _TerminalSinkError:
        raise
    except ChainReuseError as exc:
        _record_failure(traversal, interceptor, exc)
    except Exception as exc:  # noqa: BLE001
        _record_failure(
            traversal, interceptor, InterceptorFailure(interceptor_name(interceptor), exc)
        )
    finally:
        chain._close()


def _record_failure(
    traversal: _Traversal, interceptor: Interceptor, error: Exception
) -> None:
    name = interceptor_name(interceptor)
    logger.error("Chain %s: interceptor %s failed: %s", traversal.label, name, error)
    if traversal.error is None:
        traversal.error = error
        traversal.failed_interceptor = name


def run_chain(
    payload: BasePayload,
    middlewares: Sequence[Interceptor],
    terminal: TerminalSink,
    *,
    label: str = "chain",
) -> ChainResult:
    """Run *payload* through *middlewares*, ending at *terminal*.

    An empty middleware list forwards straight to *terminal*.

    Raises
    ------
    Exception
        Whatever *terminal* raised.  Interceptor failures are contained.
    """
    traversal = _Traversal(middlewares, terminal, label)
    try:
        _advance(traversal, 0, payload)
    except _TerminalSinkError as carrier:
        raise carrier.original from None

    if traversal.delivered_payload is not None:
        return ChainResult(
            ChainOutcome.DELIVERED,
            traversal.delivered_payload,
            traversal.error,
            traversal.failed_interceptor,
        )
    if traversal.error is not None:
        return ChainResult(
            ChainOutcome.FAILED, None, traversal.error, traversal.failed_interceptor
        )
    logger.debug("Chain %s: payload %s dropped", label, payload.message_id)
    return ChainResult(ChainOutcome.DROPPED)
