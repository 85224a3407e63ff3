"""Tracing decorators for Prefect flows and tasks.

Prefect has no OpenTelemetry instrumentation of its own, so flows and tasks
are wrapped in spans manually. Apply these below the Prefect decorator:

    @flow(name="run_due_heuristics")
    @traced_flow()
    async def run_due_heuristics():
        ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from devpulse_core.telemetry import get_tracer
from opentelemetry.trace import Status, StatusCode

F = TypeVar("F", bound=Callable[..., Any])


def _traced(kind: str, name: str | None) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            tracer = get_tracer(__name__)
            with tracer.start_as_current_span(
                name or f"{kind}.{func.__name__}",
                attributes={
                    f"prefect.{kind}.name": func.__name__,
                    "prefect.type": kind,
                },
            ) as span:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        return wrapper  # type: ignore[return-value]

    return decorator


def traced_flow(name: str | None = None) -> Callable[[F], F]:
    """Wrap a flow in a parent span named ``flow.<function>`` unless ``name`` is given."""
    return _traced("flow", name)


def traced_task(name: str | None = None) -> Callable[[F], F]:
    """Wrap a task in a child span named ``task.<function>`` unless ``name`` is given."""
    return _traced("task", name)
