"""Tests for the telemetry module."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest


def run_async(coro):
    """Helper to run async functions in tests."""
    return asyncio.run(coro)


class TestTelemetryDisabled:
    """Tests for telemetry when disabled (default)."""

    def test_get_tracer_returns_noop_when_disabled(self) -> None:
        """get_tracer should return a no-op tracer when telemetry is disabled."""
        from devpulse_core.telemetry.setup import get_tracer

        tracer = get_tracer("test")
        assert tracer is not None

    def test_get_meter_returns_noop_when_disabled(self) -> None:
        """get_meter should return a no-op meter when telemetry is disabled."""
        from devpulse_core.telemetry.setup import get_meter

        meter = get_meter("test")
        assert meter is not None

    def test_init_telemetry_is_noop_when_disabled(self) -> None:
        from devpulse_core.settings import Settings
        from devpulse_core.telemetry import setup

        with patch("devpulse_core.settings.get_settings", return_value=Settings(otel_enabled=False)):
            assert setup.init_telemetry("worker") is False

        # Shutdown without init must not raise
        run_async(setup.shutdown_telemetry())


class TestResource:
    """Tests for the resource and sampler built at startup."""

    def test_worker_role_attributes(self) -> None:
        from devpulse_core.settings import Settings
        from devpulse_core.telemetry.setup import resource_attributes

        attributes = resource_attributes(Settings(otel_service_name="pulse", debug=True), "worker")

        assert attributes["service.name"] == "pulse-worker"
        assert attributes["service.namespace"] == "devpulse"
        assert attributes["devpulse.role"] == "worker"
        assert attributes["deployment.environment"] == "development"

    def test_without_role_keeps_base_service_name(self) -> None:
        from devpulse_core.settings import Settings
        from devpulse_core.telemetry.setup import resource_attributes

        attributes = resource_attributes(Settings(otel_service_name="devpulse", debug=False))

        assert attributes["service.name"] == "devpulse"
        assert "devpulse.role" not in attributes
        assert attributes["deployment.environment"] == "production"

    def test_build_sampler(self) -> None:
        from devpulse_core.telemetry.setup import build_sampler
        from opentelemetry.sdk.trace.sampling import (
            ALWAYS_OFF,
            ALWAYS_ON,
            ParentBasedTraceIdRatio,
            TraceIdRatioBased,
        )

        assert build_sampler("always_off", 1.0) is ALWAYS_OFF
        assert build_sampler("always_on", 1.0) is ALWAYS_ON
        assert build_sampler("no_such_sampler", 1.0) is ALWAYS_ON
        assert isinstance(build_sampler("traceidratio", 0.25), TraceIdRatioBased)
        assert isinstance(build_sampler("parentbased_traceidratio", 0.25), ParentBasedTraceIdRatio)

    def test_span_helpers_use_shared_tracer_factory(self) -> None:
        from devpulse_core.telemetry import spans

        tracer = MagicMock()
        with patch.object(spans, "get_tracer", return_value=tracer) as factory:

            async def test():
                async with spans.trace_db_operation("SELECT", "alerts"):
                    pass

            run_async(test())

        factory.assert_called_once_with("devpulse_core.telemetry.spans")
        tracer.start_as_current_span.assert_called_once()


class TestSpanHelpers:
    """Tests for span helper context managers."""

    def test_trace_rule_evaluation_creates_span(self) -> None:
        from devpulse_core.telemetry.spans import trace_rule_evaluation

        async def test():
            async with trace_rule_evaluation("stale_pr", "ws-1") as span:
                assert span is not None
                span.set_attribute("heuristics.candidates", 2)

        run_async(test())

    def test_trace_rule_evaluation_reraises(self) -> None:
        from devpulse_core.telemetry.spans import trace_rule_evaluation

        async def test():
            with pytest.raises(RuntimeError):
                async with trace_rule_evaluation("high_wip", "ws-1"):
                    raise RuntimeError("store timeout")

        run_async(test())

    def test_trace_db_operation_creates_span(self) -> None:
        from devpulse_core.telemetry.spans import trace_db_operation

        async def test():
            async with trace_db_operation("INSERT", "alerts") as span:
                assert span is not None
                span.set_attribute("db.rows_affected", 1)

        run_async(test())


class TestAlertCounter:
    """Tests for the alerts-created counter."""

    def test_record_alerts_created_adds_to_counter(self) -> None:
        from devpulse_core.telemetry import spans

        counter = MagicMock()
        with patch.object(spans, "_alerts_created_counter", counter):
            spans.record_alerts_created(2, "stale_pr")
            spans.record_alerts_created(0, "stale_pr")

        counter.add.assert_called_once_with(2, {"alert.type": "stale_pr"})

    def test_record_alerts_created_with_noop_meter(self) -> None:
        from devpulse_core.telemetry import spans

        with patch.object(spans, "_alerts_created_counter", None):
            spans.record_alerts_created(1, "escalation")


class TestSettingsIntegration:
    """Tests for OTEL settings integration."""

    def test_otel_settings_have_defaults(self) -> None:
        from devpulse_core.settings import Settings

        settings = Settings()

        assert settings.otel_enabled is False
        assert settings.otel_service_name == "devpulse"
        assert settings.otel_exporter_otlp_endpoint == "http://localhost:4317"
        assert settings.otel_traces_sampler == "parentbased_traceidratio"
        assert settings.otel_traces_sampler_arg == 1.0

    def test_otel_settings_from_env(self) -> None:
        import os

        with patch.dict(
            os.environ,
            {
                "OTEL_ENABLED": "true",
                "OTEL_SERVICE_NAME": "pulse",
                "OTEL_EXPORTER_OTLP_ENDPOINT": "http://tempo:4317",
                "OTEL_TRACES_SAMPLER_ARG": "0.5",
            },
        ):
            from devpulse_core.settings import Settings

            settings = Settings()

            assert settings.otel_enabled is True
            assert settings.otel_service_name == "pulse"
            assert settings.otel_exporter_otlp_endpoint == "http://tempo:4317"
            assert settings.otel_traces_sampler_arg == 0.5

    def test_prefect_api_url_is_left_to_prefect(self) -> None:
        from devpulse_core.settings import Settings

        assert "prefect_api_url" not in Settings.model_fields
