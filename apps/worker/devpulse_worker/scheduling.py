"""Workspace scheduling for heuristics passes.

Kept free of Prefect so the database side can be exercised directly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from devpulse_core.health import HeuristicRunReport, HeuristicsError, HeuristicThresholds
from devpulse_core.health.engine import run_heuristic_pass
from devpulse_core.health.sql_store import SqlEventStore
from devpulse_core.models import Workspace
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class UnknownWorkspaceError(HeuristicsError):
    """Raised when a pass is requested for a workspace that does not exist."""

    def __init__(self, workspace_id: UUID):
        super().__init__(f"Workspace {workspace_id} not found")
        self.workspace_id = workspace_id


def compute_next_run_at(
    now: datetime,
    interval_minutes: int | None,
    default_interval_minutes: int,
) -> datetime:
    """Next pass time; a missing or non-positive interval falls back to the default."""
    minutes = default_interval_minutes
    if interval_minutes is not None and interval_minutes > 0:
        minutes = interval_minutes
    return now + timedelta(minutes=minutes)


async def list_due_workspace_ids(session: AsyncSession, now: datetime) -> list[UUID]:
    """Enabled workspaces never run, or whose next run is due."""
    result = await session.execute(
        select(Workspace.id)
        .where(
            Workspace.heuristics_enabled == True,  # noqa: E712
            or_(
                Workspace.next_heuristics_run_at.is_(None),
                Workspace.next_heuristics_run_at <= now,
            ),
        )
        .order_by(Workspace.created_at, Workspace.id)
    )
    return list(result.scalars().all())


async def run_workspace_pass(
    session: AsyncSession,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
    default_interval_minutes: int = 60,
) -> HeuristicRunReport:
    """Run the heuristics pass for one workspace and reschedule it.

    Raises:
        UnknownWorkspaceError: if the workspace does not exist
    """
    workspace = await session.get(Workspace, workspace_id)
    if workspace is None:
        raise UnknownWorkspaceError(workspace_id)

    report = await run_heuristic_pass(
        SqlEventStore(session), workspace_id, thresholds=thresholds, now=now
    )

    workspace.last_heuristics_run_at = now
    workspace.next_heuristics_run_at = compute_next_run_at(
        now, workspace.heuristics_interval_minutes, default_interval_minutes
    )
    await session.flush()
    logger.info(
        "Workspace %s (%s) next heuristics run at %s",
        workspace.name,
        workspace_id,
        workspace.next_heuristics_run_at.isoformat(),
    )
    return report
