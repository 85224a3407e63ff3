"""Tests for the flow and task tracing decorators."""

import asyncio

import pytest
from devpulse_worker.telemetry import traced_flow, traced_task


def test_traced_task_returns_result() -> None:
    @traced_task()
    async def summarize(workspace_id: str) -> dict:
        return {"workspace_id": workspace_id}

    assert asyncio.run(summarize("ws-1")) == {"workspace_id": "ws-1"}
    assert summarize.__name__ == "summarize"


def test_traced_flow_reraises() -> None:
    @traced_flow(name="flow.custom")
    async def broken() -> None:
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError, match="database unavailable"):
        asyncio.run(broken())
