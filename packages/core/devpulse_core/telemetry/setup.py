"""OpenTelemetry setup for DevPulse processes.

Every process runs under a role (``worker``, ``cli`` ...). Its spans and
metrics carry one resource: ``service.namespace=devpulse``, the service name
``<OTEL_SERVICE_NAME>-<role>`` and ``devpulse.role``. The SDK and exporters are
imported only once telemetry is enabled; until then the API hands out no-op
tracers and meters.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace.sampling import Sampler
    from opentelemetry.trace import Tracer

    from devpulse_core.settings import Settings

SERVICE_NAMESPACE = "devpulse"
ROLE_ATTRIBUTE = "devpulse.role"
METRIC_EXPORT_INTERVAL_MS = 60_000

_initialized = False

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return version("devpulse")
    except PackageNotFoundError:
        return "0.0.0"


def resource_attributes(settings: Settings, role: str | None = None) -> dict[str, Any]:
    """Resource attributes shared by the tracer and meter providers of one process."""
    service_name = settings.otel_service_name
    if role:
        service_name = f"{service_name}-{role}"

    attributes: dict[str, Any] = {
        "service.name": service_name,
        "service.namespace": SERVICE_NAMESPACE,
        "service.version": _package_version(),
        "deployment.environment": "development" if settings.debug else "production",
    }
    if role:
        attributes[ROLE_ATTRIBUTE] = role
    return attributes


def build_sampler(name: str, ratio: float) -> Sampler:
    """Map an ``OTEL_TRACES_SAMPLER`` name to a sampler. Unknown names sample everything."""
    from opentelemetry.sdk.trace.sampling import (
        ALWAYS_OFF,
        ALWAYS_ON,
        ParentBasedTraceIdRatio,
        TraceIdRatioBased,
    )

    if name == "always_off":
        return ALWAYS_OFF
    if name == "traceidratio":
        return TraceIdRatioBased(ratio)
    if name == "parentbased_traceidratio":
        return ParentBasedTraceIdRatio(ratio)
    if name != "always_on":
        logger.warning("Unknown trace sampler %r, sampling every trace", name)
    return ALWAYS_ON


def _install_providers(settings: Settings, resource: Resource) -> None:
    from opentelemetry import metrics, trace
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    tracer_provider = TracerProvider(
        resource=resource,
        sampler=build_sampler(settings.otel_traces_sampler, settings.otel_traces_sampler_arg),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint))
    )
    trace.set_tracer_provider(tracer_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=settings.otel_exporter_otlp_endpoint),
        export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))


def init_telemetry(role: str | None = None) -> bool:
    """Install OTLP tracer and meter providers for this process if OTEL_ENABLED.

    Later calls are no-ops. Returns whether telemetry is active.
    """
    global _initialized

    if _initialized:
        return True

    from devpulse_core.settings import get_settings

    settings = get_settings()
    if not settings.otel_enabled:
        logger.debug("OpenTelemetry disabled (OTEL_ENABLED=false)")
        return False

    from opentelemetry.sdk.resources import Resource

    attributes = resource_attributes(settings, role)
    _install_providers(settings, Resource.create(attributes))

    _initialized = True
    logger.info(
        "OpenTelemetry initialized: service=%s, role=%s, endpoint=%s",
        attributes["service.name"],
        role or "-",
        settings.otel_exporter_otlp_endpoint,
    )
    return True


async def shutdown_telemetry() -> None:
    """Flush and shut down exporters. Safe to call when never initialized."""
    global _initialized

    if not _initialized:
        return

    from opentelemetry import metrics, trace

    tracer_provider = trace.get_tracer_provider()
    if hasattr(tracer_provider, "shutdown"):
        tracer_provider.shutdown()

    meter_provider = metrics.get_meter_provider()
    if hasattr(meter_provider, "shutdown"):
        meter_provider.shutdown()

    _initialized = False
    logger.info("OpenTelemetry shutdown complete")


def get_tracer(name: str) -> Tracer:
    """Tracer for ``name`` from the current provider (no-op until initialized)."""
    from opentelemetry import trace

    return trace.get_tracer(name, _package_version())


def get_meter(name: str) -> Meter:
    """Meter for ``name`` from the current provider (no-op until initialized)."""
    from opentelemetry import metrics

    return metrics.get_meter(name, _package_version())
