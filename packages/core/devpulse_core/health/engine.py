"""Heuristics pass orchestration.

One pass over a workspace:

1. evaluate every rule in ``HEURISTIC_RULES``, each behind its own error boundary
2. persist the candidates (deduplicated by the store)
3. escalate critical alerts left unresolved too long
4. compute derived metrics: cycle times, knowledge report, health score

5. record the health score as a snapshot for the trend

Rules run one after another. The SQL store wraps a single ``AsyncSession``,
which must not be used concurrently. Every rule, alert insert and later step
runs inside ``store.savepoint()``, so a statement that fails on the database
rolls back only its own step.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from devpulse_core.health.alerts import escalate_unresolved_critical, persist_candidates
from devpulse_core.health.cycle_time import calculate_cycle_time, summarize_cycle_times
from devpulse_core.health.knowledge import build_knowledge_report
from devpulse_core.health.models import (
    AlertRecord,
    AlertSeverity,
    CandidateAlert,
    CycleTimeMetrics,
    FileKnowledge,
    ensure_utc,
)
from devpulse_core.health.rules import HEURISTIC_RULES
from devpulse_core.health.score import HealthScore, compute_health_score
from devpulse_core.health.store import EventStore
from devpulse_core.health.thresholds import HeuristicThresholds
from devpulse_core.telemetry import trace_rule_evaluation

logger = logging.getLogger(__name__)

HEALTH_COMMIT_WINDOW = timedelta(days=7)
HEALTH_ALERT_SAMPLE = 200


@dataclass(frozen=True)
class PullRequestCycleTime:
    number: int
    title: str
    author: str
    metrics: CycleTimeMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "author": self.author,
            **self.metrics.to_dict(),
        }


@dataclass
class HeuristicRunReport:
    """Outcome of one pass. ``all_created`` lists the alerts this run stored."""

    workspace_id: UUID
    started_at: datetime
    created_alerts: list[AlertRecord] = field(default_factory=list)
    escalations: list[AlertRecord] = field(default_factory=list)
    candidate_counts: dict[str, int] = field(default_factory=dict)
    failed_rules: list[str] = field(default_factory=list)
    failed_steps: list[str] = field(default_factory=list)
    cycle_times: list[PullRequestCycleTime] = field(default_factory=list)
    cycle_time_summary: dict[str, Any] = field(default_factory=dict)
    knowledge: list[FileKnowledge] = field(default_factory=list)
    health: HealthScore | None = None

    @property
    def all_created(self) -> list[AlertRecord]:
        return [*self.created_alerts, *self.escalations]

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly summary."""
        return {
            "workspace_id": str(self.workspace_id),
            "started_at": self.started_at.isoformat(),
            "alerts_created": len(self.created_alerts),
            "escalations_created": len(self.escalations),
            "created_alerts": [record.to_dict() for record in self.all_created],
            "candidate_counts": dict(self.candidate_counts),
            "failed_rules": list(self.failed_rules),
            "failed_steps": list(self.failed_steps),
            "cycle_time_summary": dict(self.cycle_time_summary),
            "critical_files": [item.file_path for item in self.knowledge if item.is_critical],
            "health": self.health.to_dict() if self.health else None,
        }


async def _evaluate_rules(
    store: EventStore,
    workspace_id: UUID,
    report: HeuristicRunReport,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    candidates: list[CandidateAlert] = []
    for name, rule in HEURISTIC_RULES.items():
        try:
            async with store.savepoint(), trace_rule_evaluation(name, str(workspace_id)) as span:
                found = await rule(store, workspace_id, now=now, thresholds=thresholds)
                span.set_attribute("heuristics.candidates", len(found))
        except Exception:
            logger.exception("Heuristic rule %s failed for workspace %s", name, workspace_id)
            report.failed_rules.append(name)
            continue
        report.candidate_counts[name] = len(found)
        candidates.extend(found)
    return candidates


async def _compute_cycle_times(
    store: EventStore,
    workspace_id: UUID,
    report: HeuristicRunReport,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> None:
    lifecycles = await store.list_pull_request_lifecycles(
        workspace_id, now - thresholds.cycle_time_lookback
    )
    for lifecycle in lifecycles:
        try:
            metrics = calculate_cycle_time(lifecycle.event, thresholds)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping cycle time for PR #%s: %s", lifecycle.number, exc)
            continue
        report.cycle_times.append(
            PullRequestCycleTime(
                number=lifecycle.number,
                title=lifecycle.title,
                author=lifecycle.author,
                metrics=metrics,
            )
        )
    report.cycle_time_summary = summarize_cycle_times(item.metrics for item in report.cycle_times)


async def _compute_health(
    store: EventStore,
    workspace_id: UUID,
    report: HeuristicRunReport,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> None:
    unresolved = await store.list_alerts(
        workspace_id, unresolved_only=True, limit=HEALTH_ALERT_SAMPLE
    )
    concentrated = sum(
        1
        for item in report.knowledge
        if item.concentration.concentration_percent > thresholds.knowledge_concentration_percent
    )
    report.health = compute_health_score(
        commits_last_7_days=await store.count_commits_since(
            workspace_id, now - HEALTH_COMMIT_WINDOW
        ),
        open_pull_requests=await store.count_open_pull_requests(workspace_id),
        open_issues=await store.count_open_issues(workspace_id),
        concentrated_files=concentrated,
        critical_alerts=sum(1 for alert in unresolved if alert.severity == AlertSeverity.CRITICAL),
    )


async def run_heuristic_pass(
    store: EventStore,
    workspace_id: UUID,
    *,
    thresholds: HeuristicThresholds | None = None,
    now: datetime | None = None,
) -> HeuristicRunReport:
    """Run every rule, persist and escalate alerts, then compute derived metrics.

    Failures are contained: a failing rule lands in ``failed_rules``, a
    failing later step in ``failed_steps``. The pass itself does not raise
    for either.
    """
    thresholds = thresholds or HeuristicThresholds()
    now = ensure_utc(now) if now is not None else datetime.now(UTC)
    report = HeuristicRunReport(workspace_id=workspace_id, started_at=now)

    candidates = await _evaluate_rules(store, workspace_id, report, now=now, thresholds=thresholds)

    report.created_alerts = await persist_candidates(
        store, workspace_id, candidates, now=now, dedup_window=thresholds.dedup_window
    )

    try:
        async with store.savepoint():
            report.escalations = await escalate_unresolved_critical(
                store,
                workspace_id,
                now=now,
                escalation_delay=thresholds.escalation_delay,
                dedup_window=thresholds.dedup_window,
            )
    except Exception:
        logger.exception("Escalation failed for workspace %s", workspace_id)
        report.failed_steps.append("escalation")

    try:
        async with store.savepoint():
            await _compute_cycle_times(store, workspace_id, report, now=now, thresholds=thresholds)
    except Exception:
        logger.exception("Cycle time computation failed for workspace %s", workspace_id)
        report.failed_steps.append("cycle_time")

    try:
        async with store.savepoint():
            report.knowledge = build_knowledge_report(
                await store.list_file_contributions(workspace_id),
                threshold_percent=thresholds.knowledge_concentration_percent,
            )
    except Exception:
        logger.exception("Knowledge report failed for workspace %s", workspace_id)
        report.failed_steps.append("knowledge")

    try:
        async with store.savepoint():
            await _compute_health(store, workspace_id, report, now=now, thresholds=thresholds)
    except Exception:
        logger.exception("Health score failed for workspace %s", workspace_id)
        report.failed_steps.append("health")

    if report.health is not None:
        try:
            async with store.savepoint():
                await store.record_health_snapshot(workspace_id, report.health, taken_at=now)
        except Exception:
            logger.exception("Health snapshot failed for workspace %s", workspace_id)
            report.failed_steps.append("health_snapshot")

    logger.info(
        "Heuristics pass for workspace %s: %d candidates, %d alerts, %d escalations, "
        "%d failed rules",
        workspace_id,
        len(candidates),
        len(report.created_alerts),
        len(report.escalations),
        len(report.failed_rules),
    )
    return report
