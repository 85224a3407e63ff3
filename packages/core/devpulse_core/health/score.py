"""Workspace health score shown on the dashboard."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class HealthScore:
    score: int
    commit_score: int
    pr_score: int
    issue_score: int
    bus_factor_score: int
    alert_penalty: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "commit_score": self.commit_score,
            "pr_score": self.pr_score,
            "issue_score": self.issue_score,
            "bus_factor_score": self.bus_factor_score,
            "alert_penalty": self.alert_penalty,
        }


@dataclass(frozen=True)
class HealthSnapshotRecord:
    """A stored health score; the latest snapshots form the dashboard trend."""

    health: HealthScore
    taken_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"taken_at": self.taken_at.isoformat(), **self.health.to_dict()}


def _tiered(value: int, tiers: tuple[tuple[int, int], ...]) -> int:
    """First score whose limit ``value`` exceeds, else 100."""
    for limit, score in tiers:
        if value > limit:
            return score
    return 100


def compute_health_score(
    *,
    commits_last_7_days: int,
    open_pull_requests: int,
    open_issues: int,
    concentrated_files: int,
    critical_alerts: int,
) -> HealthScore:
    """Combine activity, backlog and knowledge-risk components into a 0-100 score."""
    commit_score = min(100, commits_last_7_days * 5)
    pr_score = _tiered(open_pull_requests, ((10, 40), (5, 70)))
    issue_score = _tiered(open_issues, ((20, 50), (10, 75)))
    bus_factor_score = _tiered(concentrated_files, ((5, 40), (2, 70)))
    alert_penalty = min(50, critical_alerts * 15)

    mean = (commit_score + pr_score + issue_score + bus_factor_score) / 4
    return HealthScore(
        # half-up rounding, not banker's
        score=max(0, math.floor(mean - alert_penalty + 0.5)),
        commit_score=commit_score,
        pr_score=pr_score,
        issue_score=issue_score,
        bus_factor_score=bus_factor_score,
        alert_penalty=alert_penalty,
    )
