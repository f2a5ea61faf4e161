"""Unit tests for integration filtering (per-call flags and tracking plan)."""

from __future__ import annotations

from pulsekit.models.payloads import PayloadType, build
from pulsekit.models.project import EventPlan, TrackingPlan
from pulsekit.routing.plan import skip_reason


def _plan(**events: EventPlan) -> TrackingPlan:
    return TrackingPlan(track=dict(events))


class TestCallOptions:
    def test_enabled_by_default(self, make_track):
        assert skip_reason(make_track(), "A") is None

    def test_explicit_disable(self, make_track):
        payload = make_track(integrations={"A": False})
        assert skip_reason(payload, "A") == "disabled by call options"
        assert skip_reason(payload, "B") is None

    def test_all_false_disables_everything(self, make_track):
        payload = make_track(integrations={"All": False})
        assert skip_reason(payload, "A") == "all integrations disabled by call options"

    def test_all_false_with_explicit_enable(self, make_track):
        payload = make_track(integrations={"All": False, "A": True})
        assert skip_reason(payload, "A") is None
        assert skip_reason(payload, "B") is not None


class TestTrackingPlan:
    def test_disabled_event_goes_nowhere(self, make_track):
        plan = TrackingPlan.model_validate({"track": {"Secret": {"enabled": False}}})
        assert skip_reason(make_track("Secret"), "A", plan) is not None
        assert skip_reason(make_track("Public"), "A", plan) is None

    def test_disabled_event_cannot_be_overridden(self, make_track):
        plan = _plan(Secret=EventPlan(enabled=False))
        payload = make_track("Secret", integrations={"A": True, "All": True})
        assert "disabled by tracking plan" in skip_reason(payload, "A", plan)

    def test_plan_disables_one_destination(self, make_track):
        plan = _plan(Checkout=EventPlan(integrations={"A": False}))
        assert skip_reason(make_track("Checkout"), "A", plan) is not None
        assert skip_reason(make_track("Checkout"), "B", plan) is None

    def test_call_options_override_plan_for_destination(self, make_track):
        plan = _plan(Checkout=EventPlan(integrations={"A": False}))
        payload = make_track("Checkout", integrations={"A": True})
        assert skip_reason(payload, "A", plan) is None

    def test_plan_enable_beats_all_false(self, make_track):
        plan = _plan(Checkout=EventPlan(integrations={"A": True}))
        payload = make_track("Checkout", integrations={"All": False})
        assert skip_reason(payload, "A", plan) is None

    def test_plan_ignores_non_track_payloads(self):
        plan = _plan(Main=EventPlan(enabled=False))
        screen = build(PayloadType.SCREEN, name="Main")
        assert skip_reason(screen, "A", plan) is None
