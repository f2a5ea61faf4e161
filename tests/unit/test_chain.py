"""Unit tests for the middleware chain engine."""

from __future__ import annotations

import logging

import pytest

from pulsekit.core.chain import (
    Chain,
    ChainOutcome,
    ChainReuseError,
    InterceptorFailure,
    Middleware,
    interceptor_name,
    run_chain,
)
from pulsekit.models.payloads import BasePayload


def proceed(chain: Chain) -> None:
    chain.proceed()


def drop(chain: Chain) -> None:
    pass


def explode(chain: Chain) -> None:
    raise RuntimeError("boom")


class _Sink:
    def __init__(self) -> None:
        self.received: list[BasePayload] = []

    def __call__(self, payload: BasePayload) -> None:
        self.received.append(payload)


class _Tagger:
    """Object-style interceptor that adds a property."""

    name = "tagger"

    def __init__(self, key: str) -> None:
        self.key = key

    def intercept(self, chain: Chain) -> None:
        chain.proceed(chain.payload.to_builder().property(self.key, True).build())


class TestPassThrough:
    def test_empty_list_forwards_to_terminal(self, make_track):
        payload = make_track()
        sink = _Sink()
        result = run_chain(payload, [], sink)
        assert result.outcome == ChainOutcome.DELIVERED
        assert sink.received == [payload]

    def test_all_proceed_preserves_identity(self, make_track):
        payload = make_track()
        sink = _Sink()
        result = run_chain(payload, [proceed, proceed, proceed], sink)
        assert result.delivered
        assert sink.received[0] is payload
        assert result.payload is payload

    def test_interceptors_run_in_order(self, make_track):
        seen: list[str] = []

        def record(tag: str):
            def _interceptor(chain: Chain) -> None:
                seen.append(tag)
                chain.proceed()

            return _interceptor

        run_chain(make_track(), [record("a"), record("b"), record("c")], _Sink())
        assert seen == ["a", "b", "c"]

    def test_modified_payload_is_forwarded(self, make_track):
        payload = make_track()
        sink = _Sink()
        run_chain(payload, [_Tagger("first"), _Tagger("second")], sink)
        assert sink.received[0].properties == {"first": True, "second": True}
        assert payload.properties == {}

    def test_object_interceptor_satisfies_protocol(self):
        assert isinstance(_Tagger("k"), Middleware)

    def test_chain_exposes_label(self, make_track):
        labels: list[str] = []

        def capture(chain: Chain) -> None:
            labels.append(chain.label)
            chain.proceed()

        run_chain(make_track(), [capture], _Sink(), label="Pulse.io")
        assert labels == ["Pulse.io"]


class TestShortCircuit:
    def test_silent_drop(self, make_track):
        sink = _Sink()
        result = run_chain(make_track(), [proceed, drop, proceed], sink)
        assert result.outcome == ChainOutcome.DROPPED
        assert result.error is None
        assert sink.received == []

    def test_later_interceptors_not_invoked(self, make_track):
        calls: list[str] = []

        def after(chain: Chain) -> None:
            calls.append("after")
            chain.proceed()

        run_chain(make_track(), [drop, after], _Sink())
        assert calls == []


class TestFailures:
    def test_raising_interceptor_drops_payload(self, make_track, caplog):
        sink = _Sink()
        with caplog.at_level(logging.ERROR, logger="pulsekit"):
            result = run_chain(make_track(), [explode, proceed], sink, label="source")
        assert result.outcome == ChainOutcome.FAILED
        assert isinstance(result.error, InterceptorFailure)
        assert isinstance(result.error.cause, RuntimeError)
        assert result.interceptor == "explode"
        assert sink.received == []
        assert "interceptor explode failed" in caplog.text

    def test_failure_after_proceed_still_delivers(self, make_track):
        def proceed_then_raise(chain: Chain) -> None:
            chain.proceed()
            raise ValueError("late")

        sink = _Sink()
        result = run_chain(make_track(), [proceed_then_raise], sink)
        assert result.outcome == ChainOutcome.DELIVERED
        assert len(sink.received) == 1
        assert isinstance(result.error, InterceptorFailure)

    def test_terminal_exception_propagates(self, make_track):
        def refuse(payload: BasePayload) -> None:
            raise ConnectionError("down")

        with pytest.raises(ConnectionError, match="down"):
            run_chain(make_track(), [proceed, proceed], refuse)

    def test_terminal_exception_is_not_swallowed_by_interceptor_frames(self, make_track):
        def guarded(chain: Chain) -> None:
            chain.proceed()

        def refuse(payload: BasePayload) -> None:
            raise ConnectionError("down")

        with pytest.raises(ConnectionError):
            run_chain(make_track(), [guarded], refuse)


class TestReuse:
    def test_double_proceed_raises_and_delivers_once(self, make_track):
        errors: list[Exception] = []

        def twice(chain: Chain) -> None:
            chain.proceed()
            try:
                chain.proceed()
            except ChainReuseError as exc:
                errors.append(exc)
                raise

        sink = _Sink()
        result = run_chain(make_track(), [twice], sink)
        assert len(errors) == 1
        assert len(sink.received) == 1
        assert isinstance(result.error, ChainReuseError)

    def test_retained_chain_cannot_proceed_later(self, make_track):
        kept: list[Chain] = []

        def keep(chain: Chain) -> None:
            kept.append(chain)

        sink = _Sink()
        run_chain(make_track(), [keep], sink)
        with pytest.raises(ChainReuseError, match="no longer active"):
            kept[0].proceed()
        assert sink.received == []


class TestInterceptorName:
    def test_function(self):
        assert interceptor_name(explode) == "explode"

    def test_object_with_name(self):
        assert interceptor_name(_Tagger("k")) == "tagger"

    def test_object_without_name(self):
        class Anonymous:
            def intercept(self, chain: Chain) -> None:
                chain.proceed()

        assert interceptor_name(Anonymous()) == "Anonymous"
