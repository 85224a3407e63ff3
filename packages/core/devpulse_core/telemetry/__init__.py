"""OpenTelemetry initialization and span helpers.

Telemetry is disabled by default. With OTEL_ENABLED=false no SDK import
happens and the API hands out no-op tracers and meters.

Usage:
    from devpulse_core.telemetry import init_telemetry, shutdown_telemetry

    telemetry_enabled = init_telemetry("worker")
    ...
    await shutdown_telemetry()
"""

from devpulse_core.telemetry.setup import (
    get_meter,
    get_tracer,
    init_telemetry,
    shutdown_telemetry,
)
from devpulse_core.telemetry.spans import (
    record_alerts_created,
    trace_db_operation,
    trace_rule_evaluation,
)

__all__ = [
    "init_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "get_meter",
    "record_alerts_created",
    "trace_db_operation",
    "trace_rule_evaluation",
]
