"""Prefect flows for the heuristics pass.

Features:
- Native Prefect scheduling (no custom scheduler)
- Automatic retries with exponential backoff
- Concurrency limits via tags (db-heavy)

Task retries are safe: alert creation is idempotent.
"""

import logging
import uuid
from datetime import UTC, datetime

from devpulse_core.database import get_session
from devpulse_core.health import HeuristicThresholds
from devpulse_core.settings import get_settings
from prefect import flow, task
from prefect.tasks import exponential_backoff

from devpulse_worker.scheduling import (
    UnknownWorkspaceError,
    list_due_workspace_ids,
    run_workspace_pass,
)
from devpulse_worker.telemetry import traced_flow, traced_task

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_RETRIES = 2

# Concurrency limit tags (set limits via: prefect concurrency-limit create <tag> <limit>)
TAG_DB_HEAVY = "db-heavy"


def retry_unless_unknown_workspace(task, task_run, state) -> bool:
    """Retry condition: a missing workspace will not appear on retry."""
    try:
        state.result()
    except UnknownWorkspaceError:
        return False
    except Exception:
        return True
    return True


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=exponential_backoff(backoff_factor=2),
    tags=[TAG_DB_HEAVY],
)
@traced_task()
async def get_due_workspaces() -> list[str]:
    """Get ids of all workspaces due for a heuristics pass."""
    async with get_session() as session:
        workspace_ids = await list_due_workspace_ids(session, datetime.now(UTC))
    return [str(workspace_id) for workspace_id in workspace_ids]


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=exponential_backoff(backoff_factor=2),
    tags=[TAG_DB_HEAVY],
    retry_condition_fn=retry_unless_unknown_workspace,
)
@traced_task()
async def run_heuristics_for_workspace(workspace_id: str) -> dict:
    """Run one pass in its own transaction and return the report summary."""
    settings = get_settings()
    thresholds = HeuristicThresholds.from_settings(settings)
    async with get_session() as session:
        report = await run_workspace_pass(
            session,
            uuid.UUID(workspace_id),
            now=datetime.now(UTC),
            thresholds=thresholds,
            default_interval_minutes=settings.heuristics_default_interval_minutes,
        )
    return report.to_dict()


@flow(name="run_due_heuristics")
@traced_flow()
async def run_due_heuristics() -> dict:
    """Flow to run the heuristics pass for every due workspace.

    A failing workspace is reported in the result and does not stop the others.
    """
    workspace_ids = await get_due_workspaces()

    if not workspace_ids:
        return {"processed": 0, "failed": 0, "workspaces": []}

    results = []
    failed = 0
    for workspace_id in workspace_ids:
        try:
            summary = await run_heuristics_for_workspace(workspace_id)
            results.append(
                {
                    "workspace_id": workspace_id,
                    "alerts_created": summary["alerts_created"],
                    "escalations_created": summary["escalations_created"],
                    "failed_rules": summary["failed_rules"],
                }
            )
        except Exception as e:
            logger.exception("Heuristics pass failed for workspace %s", workspace_id)
            failed += 1
            results.append({"workspace_id": workspace_id, "error": str(e)})

    return {"processed": len(results) - failed, "failed": failed, "workspaces": results}


@flow(name="run_workspace_heuristics")
@traced_flow()
async def run_workspace_heuristics(workspace_id: str) -> dict:
    """Flow to run the heuristics pass for a single workspace on demand.

    Args:
        workspace_id: UUID of the workspace

    Returns:
        The run report summary, or ``{"workspace_id", "error"}`` when the
        workspace is unknown
    """
    try:
        uuid.UUID(workspace_id)
    except ValueError:
        return {"workspace_id": workspace_id, "error": "Invalid workspace id"}

    try:
        return await run_heuristics_for_workspace(workspace_id)
    except UnknownWorkspaceError as e:
        logger.warning("%s", e)
        return {"workspace_id": workspace_id, "error": str(e)}
