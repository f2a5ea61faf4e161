"""Unit tests for options, project settings, destination states, and stats."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from pulsekit.core.stats import StatsRecorder
from pulsekit.models.destinations import VALID_TRANSITIONS, DestinationState
from pulsekit.models.options import (
    MAX_FLUSH_QUEUE_SIZE,
    AnalyticsOptions,
    CallOptions,
    LogLevel,
)
from pulsekit.models.project import COLLECTOR_DESTINATION, ProjectSettings


class TestAnalyticsOptions:
    def test_defaults(self):
        options = AnalyticsOptions()
        assert options.flush_queue_size == 20
        assert options.flush_interval == 30.0
        assert options.log_level == LogLevel.NONE
        assert options.max_retries == 3

    @pytest.mark.parametrize("size", [0, MAX_FLUSH_QUEUE_SIZE + 1])
    def test_flush_queue_size_bounds(self, size):
        with pytest.raises(PydanticValidationError):
            AnalyticsOptions(flush_queue_size=size)

    def test_bounds_inclusive(self):
        assert AnalyticsOptions(flush_queue_size=1).flush_queue_size == 1
        assert AnalyticsOptions(flush_queue_size=250).flush_queue_size == 250

    def test_log_level_case_insensitive(self):
        assert AnalyticsOptions(log_level="VERBOSE").log_level == LogLevel.VERBOSE

    def test_unknown_option_rejected(self):
        with pytest.raises(PydanticValidationError):
            AnalyticsOptions(flush_size=3)

    def test_frozen(self):
        with pytest.raises(PydanticValidationError):
            AnalyticsOptions().flush_queue_size = 5  # type: ignore[misc]


class TestLogLevel:
    def test_python_levels(self):
        assert LogLevel.INFO.python_level == logging.INFO
        assert LogLevel.DEBUG.python_level == logging.DEBUG
        assert LogLevel.BASIC.python_level == logging.DEBUG
        assert LogLevel.NONE.python_level > logging.CRITICAL

    def test_only_verbose_logs_payloads(self):
        assert LogLevel.VERBOSE.log_payloads()
        assert not LogLevel.DEBUG.log_payloads()


class TestCallOptions:
    def test_with_integration_returns_copy(self):
        base = CallOptions()
        updated = base.with_integration("All", False).with_integration("A", True)
        assert base.integrations == {}
        assert updated.integrations == {"All": False, "A": True}

    def test_with_context(self):
        options = CallOptions().with_context("campaign", {"name": "spring"})
        assert options.context == {"campaign": {"name": "spring"}}

    def test_merged_with_layers_overrides(self):
        defaults = CallOptions(
            integrations={"All": True, "A": False},
            context={"channel": "app", "campaign": "default"},
            timestamp_ns=1,
        )
        overrides = CallOptions(integrations={"A": True}, context={"campaign": "spring"})

        merged = defaults.merged_with(overrides)

        assert merged.integrations == {"All": True, "A": True}
        assert merged.context == {"channel": "app", "campaign": "spring"}
        assert merged.timestamp_ns == 1
        assert defaults.context["campaign"] == "default"
        assert defaults.merged_with(None) is defaults
        assert defaults.merged_with(CallOptions(timestamp_ns=5)).timestamp_ns == 5


class TestProjectSettings:
    def test_collector_always_present_with_api_key(self):
        settings = ProjectSettings.create("key-1")
        assert settings.integrations == {COLLECTOR_DESTINATION: {"apiKey": "key-1"}}

    def test_merges_defaults(self):
        settings = ProjectSettings.create(
            "key-1",
            {
                "integrations": {
                    "Adjust": {"appToken": "<>", "trackAttributionData": True},
                    COLLECTOR_DESTINATION: {"batchSize": 10},
                },
                "plan": {"track": {"Secret": {"enabled": False}}},
            },
        )
        assert set(settings.model_dump()) == {"integrations", "plan"}
        assert settings.settings_for("Adjust") == {"appToken": "<>", "trackAttributionData": True}
        assert settings.settings_for(COLLECTOR_DESTINATION) == {"batchSize": 10, "apiKey": "key-1"}
        assert settings.plan.for_event("Secret").enabled is False
        assert settings.plan.for_event("Other") is None

    def test_settings_for_unknown(self):
        assert ProjectSettings.create("k").settings_for("nope") == {}


class TestDestinationStates:
    def test_terminal_states(self):
        assert VALID_TRANSITIONS[DestinationState.READY] == set()
        assert VALID_TRANSITIONS[DestinationState.FAILED] == set()


class TestStatsRecorder:
    def test_counts_and_snapshot(self):
        stats = StatsRecorder()
        stats.record_enqueued()
        stats.record_enqueued()
        stats.record_source_dropped()
        stats.record_flush(2)
        stats.record_outcome("A", "delivered")
        stats.record_outcome("A", "failed")
        stats.record_retry()
        stats.record_retry_exhausted()

        snapshot = stats.snapshot(
            {"A": DestinationState.READY, "B": DestinationState.FAILED},
            pending=3,
            retry_pending=1,
        )
        assert snapshot.enqueued == 2
        assert snapshot.source_dropped == 1
        assert snapshot.flush_count == 1
        assert snapshot.flushed_payloads == 2
        assert snapshot.retried == 1
        assert snapshot.retry_exhausted == 1
        assert snapshot.pending == 3
        assert snapshot.retry_pending == 1
        assert snapshot.delivered == 1
        assert snapshot.destination("A").state == DestinationState.READY
        assert snapshot.destination("A").failed == 1
        assert snapshot.destination("B").delivered == 0
        assert snapshot.destination("C") is None

    def test_unknown_outcome_rejected(self):
        with pytest.raises(ValueError, match="Unknown outcome"):
            StatsRecorder().record_outcome("A", "lost")
