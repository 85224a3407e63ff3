"""Span and metric helpers for the heuristics pass."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from devpulse_core.telemetry.setup import get_meter, get_tracer

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

_alerts_created_counter = None


@asynccontextmanager
async def trace_rule_evaluation(
    rule: str,
    workspace_id: str,
) -> AsyncIterator[trace.Span]:
    """Context manager for tracing one heuristic rule evaluation.

    Usage:
        async with trace_rule_evaluation("stale_pr", str(workspace_id)) as span:
            candidates = await rule(store, workspace_id, now=now, thresholds=thresholds)
            span.set_attribute("heuristics.candidates", len(candidates))

    Yields:
        The active span for adding additional attributes
    """
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span(
        f"heuristics.rule.{rule}",
        attributes={"heuristics.rule": rule, "workspace.id": workspace_id},
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


@asynccontextmanager
async def trace_db_operation(
    operation: str,
    table: str | None = None,
) -> AsyncIterator[trace.Span]:
    """Context manager for tracing database operations.

    Usage:
        async with trace_db_operation("INSERT", "alerts") as span:
            result = await session.execute(stmt)
            span.set_attribute("db.rows_affected", result.rowcount)

    Args:
        operation: The database operation (e.g., "SELECT", "INSERT", "UPDATE")
        table: The table name (optional)
    """
    tracer = get_tracer(__name__)
    attrs: dict[str, Any] = {"db.operation": operation}
    if table:
        attrs["db.sql.table"] = table

    with tracer.start_as_current_span(
        f"db.{operation.lower()}",
        attributes=attrs,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def record_alerts_created(count: int, alert_type: str) -> None:
    """Add ``count`` to the ``devpulse.alerts.created`` counter."""
    global _alerts_created_counter
    if count <= 0:
        return
    if _alerts_created_counter is None:
        _alerts_created_counter = get_meter(__name__).create_counter(
            "devpulse.alerts.created",
            unit="1",
            description="Alerts created by the heuristics pass",
        )
    _alerts_created_counter.add(count, {"alert.type": alert_type})
