"""Main entry point for the DevPulse worker.

Uses Prefect's native scheduling: the due-workspace check runs as an interval
deployment, single-workspace passes are triggered on demand.
"""

import asyncio
import logging
from datetime import timedelta

from devpulse_core.settings import get_settings
from devpulse_core.telemetry import init_telemetry
from prefect import serve

from devpulse_worker.flows import run_due_heuristics, run_workspace_heuristics
from devpulse_worker.init_prefect import init_prefect

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the worker.

    Deployments:
    - run-due-heuristics: every HEURISTICS_SCHEDULE_MINUTES, runs all due workspaces
    - run-workspace-heuristics: on demand, one workspace
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    init_telemetry("worker")

    logger.info("Initializing Prefect infrastructure...")
    asyncio.run(init_prefect())

    settings = get_settings()

    due_deployment = run_due_heuristics.to_deployment(
        name="run-due-heuristics-deployment",
        interval=timedelta(minutes=settings.heuristics_schedule_minutes),
        description="Runs the heuristics pass for every workspace that is due",
        tags=["scheduler"],
    )

    single_deployment = run_workspace_heuristics.to_deployment(
        name="run-workspace-heuristics-deployment",
        description="Runs the heuristics pass for a single workspace",
        tags=["heuristics"],
    )

    # Blocks; Prefect handles scheduling, retries and concurrency
    logger.info("Starting Prefect worker with deployments...")
    serve(
        due_deployment,  # type: ignore[arg-type]
        single_deployment,  # type: ignore[arg-type]
    )


if __name__ == "__main__":
    main()
