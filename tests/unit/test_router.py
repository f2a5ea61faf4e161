"""Unit tests for DestinationRouter."""

from __future__ import annotations

import pytest

from pulsekit.core.chain import Chain
from pulsekit.core.middleware import MiddlewareRegistry
from pulsekit.core.readiness import IntegrationReadinessRegistry
from pulsekit.core.stats import StatsRecorder
from pulsekit.models.destinations import DestinationState
from pulsekit.models.project import EventPlan, TrackingPlan
from pulsekit.routing.router import DestinationRouter, RouteOutcome


def drop(chain: Chain) -> None:
    pass


def explode(chain: Chain) -> None:
    raise RuntimeError("boom")


@pytest.fixture
def router(
    registry: MiddlewareRegistry,
    readiness: IntegrationReadinessRegistry,
    stats: StatsRecorder,
) -> DestinationRouter:
    return DestinationRouter(registry, readiness=readiness, stats=stats)


class TestRegistration:
    def test_duplicate_key_rejected(self, router, make_destination):
        router.register_destination(make_destination("A"))
        with pytest.raises(ValueError, match="already registered"):
            router.register_destination(make_destination("A"))

    def test_unregister(self, router, make_destination):
        router.register_destination(make_destination("A"))
        router.unregister_destination("A")
        assert router.registered_destinations == []
        assert router.get("A") is None

    def test_no_destinations_returns_empty(self, router, make_track):
        assert router.route(make_track()) == []


class TestRouting:
    def test_empty_middleware_forwards_unconditionally(self, router, make_destination, make_track):
        dest = make_destination("A")
        router.register_destination(dest)
        payload = make_track()
        [result] = router.route(payload)
        assert result.outcome == RouteOutcome.DELIVERED
        assert dest.received == [payload]

    def test_registration_order(self, router, make_destination, make_track):
        order: list[str] = []

        class Ordered:
            def __init__(self, key: str) -> None:
                self.key = key

            def deliver(self, payload) -> None:
                order.append(self.key)

        for key in ("C", "A", "B"):
            router.register_destination(Ordered(key))
        results = router.route(make_track())
        assert order == ["C", "A", "B"]
        assert [r.destination for r in results] == ["C", "A", "B"]

    def test_destination_middleware_scoped(self, router, registry, make_destination, make_track):
        a, b = make_destination("A"), make_destination("B")
        router.register_destination(a)
        router.register_destination(b)
        registry.add_destination("A", drop)

        results = router.route(make_track())
        assert [r.outcome for r in results] == [RouteOutcome.DROPPED, RouteOutcome.DELIVERED]
        assert a.received == []
        assert len(b.received) == 1

    def test_failing_middleware_isolated(self, router, registry, make_destination, make_track):
        a, b = make_destination("A"), make_destination("B")
        router.register_destination(a)
        router.register_destination(b)
        registry.add_destination("A", explode)

        results = router.route(make_track())
        assert results[0].outcome == RouteOutcome.DROPPED
        assert results[0].reason == "middleware failed"
        assert results[0].error is not None
        assert results[1].outcome == RouteOutcome.DELIVERED
        assert len(b.received) == 1

    def test_delivery_failure_is_retryable_with_post_chain_payload(
        self, router, registry, make_destination, make_track
    ):
        failing = make_destination("A", fail_always=True)
        ok = make_destination("B")
        router.register_destination(failing)
        router.register_destination(ok)

        def tag(chain: Chain) -> None:
            chain.proceed(chain.payload.to_builder().property("tagged", True).build())

        registry.add_destination("A", tag)
        results = router.route(make_track())

        assert results[0].outcome == RouteOutcome.FAILED
        assert results[0].retryable
        assert results[0].payload.properties == {"tagged": True}
        assert results[1].outcome == RouteOutcome.DELIVERED

    def test_modified_payload_does_not_leak_across_destinations(
        self, router, registry, make_destination, make_track
    ):
        a, b = make_destination("A"), make_destination("B")
        router.register_destination(a)
        router.register_destination(b)

        def rename(chain: Chain) -> None:
            chain.proceed(chain.payload.to_builder().event("Renamed").build())

        registry.add_destination("A", rename)
        router.route(make_track("Original"))
        assert a.events == ["Renamed"]
        assert b.events == ["Original"]

    def test_in_place_mutation_does_not_leak_across_destinations(
        self, router, registry, make_destination, make_track
    ):
        a, b = make_destination("A"), make_destination("B")
        router.register_destination(a)
        router.register_destination(b)

        def scribble(chain: Chain) -> None:
            chain.payload.properties["leaked"] = True
            chain.payload.properties["cart"]["items"] = 0
            chain.proceed()

        registry.add_destination("A", scribble)
        payload = make_track(properties={"x": 1, "cart": {"items": 3}})
        router.route(payload)

        assert b.received[0].properties == {"x": 1, "cart": {"items": 3}}
        assert payload.properties == {"x": 1, "cart": {"items": 3}}


class TestSkipping:
    def test_call_options_skip(self, router, make_destination, make_track):
        dest = make_destination("A")
        router.register_destination(dest)
        [result] = router.route(make_track(integrations={"A": False}))
        assert result.outcome == RouteOutcome.SKIPPED
        assert dest.attempts == 0

    def test_plan_skip(self, router, make_destination, make_track):
        router.register_destination(make_destination("A"))
        router.set_plan(TrackingPlan(track={"Hidden": EventPlan(enabled=False)}))
        [result] = router.route(make_track("Hidden"))
        assert result.outcome == RouteOutcome.SKIPPED

    def test_failed_destination_skipped(self, router, readiness, make_destination, make_track):
        dest = make_destination("A")
        router.register_destination(dest)
        readiness.mark_failed("A", "init error")
        [result] = router.route(make_track())
        assert result.outcome == RouteOutcome.SKIPPED
        assert result.reason == "destination failed to initialize"
        assert dest.attempts == 0


class TestReadinessAndStats:
    def test_first_delivery_marks_ready(self, router, readiness, make_destination, make_track):
        dest = make_destination("A")
        router.register_destination(dest)
        calls: list[object] = []
        readiness.on_ready("A", calls.append)

        router.route(make_track())
        router.route(make_track())
        assert readiness.get_state("A") == DestinationState.READY
        assert calls == [dest]

    def test_failed_delivery_does_not_mark_ready(self, router, readiness, make_destination, make_track):
        router.register_destination(make_destination("A", fail_always=True))
        router.route(make_track())
        assert readiness.get_state("A") == DestinationState.UNKNOWN

    def test_outcomes_counted(self, router, registry, stats, make_destination, make_track):
        router.register_destination(make_destination("A"))
        registry.add_destination("A", drop)
        router.route(make_track())
        router.route(make_track(integrations={"A": False}))
        snapshot = stats.snapshot()
        assert snapshot.destination("A").dropped == 1
        assert snapshot.destination("A").skipped == 1


class TestDeliverAndHooks:
    def test_deliver_bypasses_middleware(self, router, registry, make_destination, make_track):
        dest = make_destination("A")
        router.register_destination(dest)
        registry.add_destination("A", drop)
        result = router.deliver("A", make_track())
        assert result.outcome == RouteOutcome.DELIVERED
        assert len(dest.received) == 1

    def test_deliver_to_unknown_destination(self, router, make_track):
        result = router.deliver("gone", make_track())
        assert result.outcome == RouteOutcome.SKIPPED
        assert not result.retryable

    def test_deliver_failure(self, router, make_destination, make_track):
        router.register_destination(make_destination("A", fail_always=True))
        assert router.deliver("A", make_track()).outcome == RouteOutcome.FAILED

    def test_flush_and_reset_hooks(self, router, make_destination):
        dest = make_destination("A")
        router.register_destination(dest)
        router.flush_destinations()
        router.reset_destinations()
        assert dest.flushes == 1
        assert dest.resets == 1

    def test_raising_hook_is_contained(self, router, make_destination):
        class BadFlush:
            key = "bad"

            def deliver(self, payload) -> None:
                pass

            def flush(self) -> None:
                raise RuntimeError("flush failed")

        good = make_destination("A")
        router.register_destination(BadFlush())
        router.register_destination(good)
        router.flush_destinations()
        assert good.flushes == 1
