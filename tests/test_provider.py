"""
Tests for flagbridge.provider.

Covers:
- Construction errors and client wrapping
- Lifecycle: NOT_READY → READY, start failure → ERROR
- Typed evaluation end to end, including every error kind
- Hooks, tracking and alias table replacement
"""

from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from flagbridge.aliases import build_alias_table
from flagbridge.cache import InMemoryCache
from flagbridge.client import CachingAssignmentClient, StaticAssignmentClient
from flagbridge.errors import (
    ErrorKind,
    InvalidConfigError,
    InvalidContextError,
    MissingConfigError,
    ProviderStartupError,
)
from flagbridge.evaluation import FlagType, Reason
from flagbridge.keys import CanonicalKey
from flagbridge.provider import ExperimentProvider, ProviderState
from flagbridge.settings import LocalEvaluationOptions, ProviderSettings, RemoteEvaluationOptions


class TestConstruction:
    """Configuration errors are raised from the constructor."""

    def test_empty_deployment_key(self, static_client):
        with pytest.raises(MissingConfigError, match="deployment key"):
            ExperimentProvider(ProviderSettings(), client=static_client)

    def test_client_required(self, settings):
        with pytest.raises(MissingConfigError):
            ExperimentProvider(settings)

    def test_client_and_factory_exclusive(self, settings, static_client):
        with pytest.raises(InvalidConfigError):
            ExperimentProvider(settings, client=static_client, client_factory=lambda s: static_client)

    def test_factory_receives_settings(self, settings, static_client):
        factory = MagicMock(return_value=static_client)
        provider = ExperimentProvider(settings, client_factory=factory)
        factory.assert_called_once_with(settings)
        assert provider.client is static_client

    def test_unknown_extra_alias(self, static_client):
        settings = ProviderSettings(deployment_key="k", extra_aliases={"geo": "nowhere"})
        with pytest.raises(InvalidConfigError):
            ExperimentProvider(settings, client=static_client)

    def test_remote_mode_wraps_client_in_cache(self, static_client):
        settings = ProviderSettings(deployment_key="k", remote=RemoteEvaluationOptions())
        provider = ExperimentProvider(settings, client=static_client)
        assert isinstance(provider.client, CachingAssignmentClient)
        assert provider.client.inner is static_client

    def test_remote_mode_without_cache(self, static_client):
        settings = ProviderSettings(
            deployment_key="k", remote=RemoteEvaluationOptions(cache_enabled=False)
        )
        assert ExperimentProvider(settings, client=static_client).client is static_client

    def test_local_mode_not_wrapped(self, settings, static_client):
        assert ExperimentProvider(settings, client=static_client).client is static_client


class TestLifecycle:
    """Provider state transitions."""

    def test_starts_not_ready(self, settings, static_client):
        provider = ExperimentProvider(settings, client=static_client)
        assert provider.state == ProviderState.NOT_READY

    def test_initialize_starts_client(self, settings, static_client):
        provider = ExperimentProvider(settings, client=static_client)
        provider.initialize()
        assert provider.state == ProviderState.READY
        assert static_client.started

    def test_ready_event_reports_mode_options(self, static_client):
        settings = ProviderSettings(
            deployment_key="k", remote=RemoteEvaluationOptions(fetch_timeout_seconds=2.5)
        )
        provider = ExperimentProvider(settings, client=static_client)
        with capture_logs() as logs:
            provider.initialize()

        [ready] = [entry for entry in logs if entry["event"] == "provider_ready"]
        assert ready["mode"] == "remote"
        assert ready["options"]["fetch_timeout_seconds"] == 2.5

    def test_factory_sized_from_settings(self, static_client):
        seen = []

        def factory(settings):
            seen.append(settings.evaluation_options.flag_config_poll_interval_seconds)
            return static_client

        settings = ProviderSettings(
            deployment_key="k", local=LocalEvaluationOptions(flag_config_poll_interval_seconds=5)
        )
        ExperimentProvider(settings, client_factory=factory)
        assert seen == [5.0]

    def test_initialize_twice_starts_once(self, settings):
        client = MagicMock()
        provider = ExperimentProvider(settings, client=client)
        provider.initialize()
        provider.initialize()
        client.start.assert_called_once()

    def test_start_failure_enters_error_state(self, settings):
        client = MagicMock()
        client.start.side_effect = ConnectionError("unreachable")
        provider = ExperimentProvider(settings, client=client)

        with pytest.raises(ProviderStartupError, match="unreachable"):
            provider.initialize()
        assert provider.state == ProviderState.ERROR

    def test_shutdown_stops_client(self, provider, static_client):
        provider.shutdown()
        assert provider.state == ProviderState.NOT_READY
        assert not static_client.started

    def test_context_manager(self, settings, static_client):
        with ExperimentProvider(settings, client=static_client) as provider:
            assert provider.state == ProviderState.READY
        assert provider.state == ProviderState.NOT_READY


class TestScenarios:
    """End-to-end evaluations."""

    def test_boolean_resolved(self, provider):
        result = provider.evaluate_boolean("bool-flag", False, {"targeting_key": "user-1"})
        assert (result.value, result.variant, result.reason, result.error_kind) == (
            True, "on", Reason.RESOLVED, ErrorKind.NONE,
        )

    def test_off_variant_defaults(self, settings):
        client = StaticAssignmentClient({"flag": {"key": "off", "payload": None}})
        with ExperimentProvider(settings, client=client) as provider:
            result = provider.evaluate_string("flag", "x", {"user_id": "u1"})
        assert (result.value, result.variant, result.reason, result.error_kind) == (
            "x", None, Reason.DEFAULT, ErrorKind.NONE,
        )

    def test_type_mismatch(self, provider):
        result = provider.evaluate_integer("bad-int", 7, {"user_id": "u1"})
        assert (result.value, result.variant, result.reason, result.error_kind) == (
            7, None, Reason.ERROR, ErrorKind.TYPE_MISMATCH,
        )

    def test_float_out_of_range_defaults(self, settings):
        client = StaticAssignmentClient({"f": {"key": "on", "payload": 10**400}})
        with ExperimentProvider(settings, client=client) as provider:
            result = provider.evaluate_float("f", 1.5, {"user_id": "u"})
        assert (result.value, result.reason, result.error_kind) == (
            1.5, Reason.ERROR, ErrorKind.TYPE_MISMATCH,
        )

    def test_object_flag_with_scalar_payload(self, provider):
        result = provider.evaluate_object("string-flag", {"d": 1}, {"user_id": "u1"})
        assert (result.value, result.variant, result.reason) == ("blue", "treatment", Reason.RESOLVED)

    def test_integer_from_string(self, provider):
        result = provider.evaluate_integer("int-flag", 0, {"user_id": "u1"})
        assert (result.value, result.variant, result.reason, result.error_kind) == (
            456, "v", Reason.RESOLVED, ErrorKind.NONE,
        )

    @pytest.mark.parametrize(
        "method, default",
        [
            ("evaluate_boolean", True),
            ("evaluate_string", "d"),
            ("evaluate_integer", 3),
            ("evaluate_float", 2.5),
            ("evaluate_object", {"d": 1}),
        ],
    )
    def test_missing_identity(self, provider, method, default):
        result = getattr(provider, method)("bool-flag", default, {})
        assert (result.value, result.variant, result.reason, result.error_kind) == (
            default, None, Reason.ERROR, ErrorKind.INVALID_CONTEXT,
        )

    def test_none_context_is_missing_identity(self, provider):
        assert provider.evaluate_boolean("bool-flag", False).error_kind == ErrorKind.INVALID_CONTEXT

    def test_float_and_object(self, provider):
        ctx = {"deviceId": "d1"}
        assert provider.evaluate_float("float-flag", 0.0, ctx).value == 1.5
        assert provider.evaluate_object("object-flag", None, ctx).value == {"color": "red", "size": 3}
        assert provider.evaluate_object("list-flag", None, ctx).value == [1, 2, 3]

    def test_resolved_metadata(self, provider):
        result = provider.evaluate_string("string-flag", "x", {"user_id": "u1"})
        assert result.metadata == {"key": "treatment", "value": "Treatment"}


class TestErrorKinds:
    """Every failure becomes a defaulted result."""

    def test_not_ready(self, settings, static_client):
        provider = ExperimentProvider(settings, client=static_client)
        result = provider.evaluate_boolean("bool-flag", False, {"user_id": "u1"})
        assert result.value is False
        assert result.error_kind == ErrorKind.PROVIDER_NOT_READY

    def test_error_state(self, settings):
        client = MagicMock()
        client.start.side_effect = RuntimeError("down")
        provider = ExperimentProvider(settings, client=client)
        with pytest.raises(ProviderStartupError):
            provider.initialize()

        result = provider.evaluate_string("f", "d", {"user_id": "u1"})
        assert result.value == "d"
        assert result.error_kind == ErrorKind.GENERAL
        client.evaluate.assert_not_called()

    def test_flag_not_found(self, provider):
        result = provider.evaluate_string("missing", "d", {"user_id": "u1"})
        assert result.error_kind == ErrorKind.FLAG_NOT_FOUND
        assert result.message == "flag missing not found"

    def test_client_failure_is_general(self, settings):
        client = MagicMock()
        client.evaluate.side_effect = TimeoutError("slow")
        with ExperimentProvider(settings, client=client) as provider:
            result = provider.evaluate_float("f", 1.0, {"user_id": "u1"})
        assert result.value == 1.0
        assert result.reason == Reason.ERROR
        assert result.error_kind == ErrorKind.GENERAL
        assert "slow" in result.message

    def test_failures_logged(self, provider):
        with capture_logs() as logs:
            provider.evaluate_string("missing", "d", {"user_id": "u1"})

        failures = [entry for entry in logs if entry["event"] == "flag_evaluation_failed"]
        assert len(failures) == 1
        assert failures[0]["log_level"] == "warning"
        assert failures[0]["flag"] == "missing"
        assert failures[0]["error_kind"] == "FLAG_NOT_FOUND"


class TestClientInteraction:
    """What the provider sends to the assignment client."""

    def test_passes_exactly_the_flag(self, provider, static_client):
        provider.evaluate_boolean("bool-flag", False, {"user_id": "u1"})
        subject, flags = static_client.calls[-1]
        assert flags == ("bool-flag",)

    def test_passes_projected_subject(self, provider, static_client):
        provider.evaluate_boolean(
            "bool-flag", False, {"targetingKey": "u1", "Country": "US", "plan": "pro"}
        )
        subject, _ = static_client.calls[-1]
        assert subject.user_id == "u1"
        assert subject.country == "US"
        assert subject.user_properties == {"plan": "pro"}

    def test_subject_hook(self, settings, static_client):
        def hook(ctx):
            ctx.subject.language = "en"

        with ExperimentProvider(settings, client=static_client, subject_hook=hook) as provider:
            provider.evaluate_boolean("bool-flag", False, {"user_id": "u1"})
        assert static_client.calls[-1][0].language == "en"

    def test_failing_subject_hook_is_invalid_context(self, settings, static_client):
        def hook(ctx):
            raise KeyError("missing")

        with ExperimentProvider(settings, client=static_client, subject_hook=hook) as provider:
            result = provider.evaluate_boolean("bool-flag", False, {"user_id": "u1"})
        assert result.error_kind == ErrorKind.INVALID_CONTEXT
        assert static_client.calls == []

    def test_remote_cache_serves_repeat_evaluations(self, static_client):
        settings = ProviderSettings(deployment_key="k", remote=RemoteEvaluationOptions())
        cache = InMemoryCache()
        with ExperimentProvider(settings, client=static_client, cache=cache) as provider:
            provider.evaluate_boolean("bool-flag", False, {"user_id": "u1"})
            provider.evaluate_string("string-flag", "x", {"user_id": "u1"})
        assert len(static_client.calls) == 1
        assert static_client.calls[0][1] == ()
        assert cache.size() == 1


class TestAliases:
    """Per-provider alias tables."""

    def test_extra_aliases_from_settings(self, static_client):
        settings = ProviderSettings(deployment_key="k", extra_aliases={"uid": "user_id"})
        with ExperimentProvider(settings, client=static_client) as provider:
            result = provider.evaluate_boolean("bool-flag", False, {"uid": "u1"})
        assert result.reason == Reason.RESOLVED

    def test_replace_alias_table(self, provider):
        assert provider.evaluate_boolean("bool-flag", False, {"member": "m1"}).reason == Reason.ERROR

        provider.replace_alias_table(build_alias_table({"member": CanonicalKey.USER_ID}))
        assert provider.evaluate_boolean("bool-flag", False, {"member": "m1"}).reason == Reason.RESOLVED

    def test_normalize(self, provider):
        record = provider.normalize({"device-id": "d1", "Country": "US"})
        assert record.as_fields() == {"device_id": "d1", "country": "US"}
        assert record.overflow == {}


class TestTrack:
    """Tracking events."""

    def test_track_sends_occurrence(self, provider, tracker):
        occurrence = provider.track(
            "purchase", {"targeting_key": "u1", "plan": "pro"}, value=9.99, attributes={"sku": "a"}
        )
        assert tracker.events == [occurrence]
        assert occurrence.event_type == "purchase"
        assert occurrence.user_id == "u1"
        assert occurrence.revenue == 9.99
        assert occurrence.event_properties == {"plan": "pro", "sku": "a"}

    def test_same_context_evaluates_and_tracks(self, provider, tracker):
        context = {"user_id": "u1", "plan": "pro"}
        assert provider.evaluate_boolean("bool-flag", False, context).reason == Reason.RESOLVED

        occurrence = provider.track("checkout", context)
        assert occurrence.plan is None
        assert occurrence.event_properties == {"plan": "pro"}

    def test_occurrence_hook(self, settings, static_client, tracker):
        def hook(ctx):
            ctx.occurrence.insert_id = f"{ctx.event_type}-1"

        provider = ExperimentProvider(
            settings, client=static_client, tracker=tracker, occurrence_hook=hook
        )
        provider.track("signup", {"user_id": "u1"})
        assert tracker.events[0].insert_id == "signup-1"

    def test_without_tracker_event_dropped(self, settings, static_client):
        provider = ExperimentProvider(settings, client=static_client)
        with capture_logs() as logs:
            provider.track("signup", {"user_id": "u1"})
        assert any(entry["event"] == "tracking_event_dropped" for entry in logs)

    def test_invalid_event_raises(self, provider, tracker):
        with pytest.raises(InvalidContextError):
            provider.track("purchase", {"user_id": "u1", "price": "free"})
        assert tracker.events == []

    def test_flag_type_dispatch(self, provider):
        result = provider.evaluate(FlagType.INTEGER, "int-flag", 0, {"user_id": "u1"})
        assert result.value == 456
