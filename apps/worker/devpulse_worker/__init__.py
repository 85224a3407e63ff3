"""DevPulse worker: Prefect flows running the heuristics pass."""

from devpulse_worker.flows import run_due_heuristics, run_workspace_heuristics

__all__ = ["run_due_heuristics", "run_workspace_heuristics"]
