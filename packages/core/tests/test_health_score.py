"""Tests for the workspace health score and thresholds."""

import pytest
from devpulse_core.health.score import compute_health_score
from devpulse_core.health.thresholds import HeuristicThresholds
from devpulse_core.settings import Settings
from pydantic import ValidationError


def test_healthy_workspace_scores_100() -> None:
    score = compute_health_score(
        commits_last_7_days=25,
        open_pull_requests=2,
        open_issues=3,
        concentrated_files=0,
        critical_alerts=0,
    )

    assert score.score == 100
    assert score.alert_penalty == 0


def test_components_and_penalty() -> None:
    score = compute_health_score(
        commits_last_7_days=4,
        open_pull_requests=7,
        open_issues=25,
        concentrated_files=3,
        critical_alerts=1,
    )

    assert score.commit_score == 20
    assert score.pr_score == 70
    assert score.issue_score == 50
    assert score.bus_factor_score == 70
    assert score.alert_penalty == 15
    # mean 52.5 - 15 = 37.5, rounded half up
    assert score.score == 38


def test_score_never_negative() -> None:
    score = compute_health_score(
        commits_last_7_days=0,
        open_pull_requests=50,
        open_issues=50,
        concentrated_files=10,
        critical_alerts=10,
    )

    assert score.alert_penalty == 50
    assert score.score == 0


def test_threshold_defaults() -> None:
    thresholds = HeuristicThresholds()

    assert thresholds.inactive_branch_days == 3
    assert thresholds.stale_pr_hours == 48
    assert thresholds.wip_threshold == 3
    assert thresholds.cycle_time_seconds == 72 * 3600
    assert thresholds.dedup_window.total_seconds() == 3600
    assert thresholds.escalation_delay.total_seconds() == 4 * 3600


def test_thresholds_validate_positive_values() -> None:
    with pytest.raises(ValidationError):
        HeuristicThresholds(wip_threshold=0)
    with pytest.raises(ValidationError):
        HeuristicThresholds(unknown_threshold=1)


def test_thresholds_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HEURISTICS_WIP_THRESHOLD", "5")
    monkeypatch.setenv("HEURISTICS_DEDUP_WINDOW_MINUTES", "30")

    thresholds = HeuristicThresholds.from_settings(Settings())

    assert thresholds.wip_threshold == 5
    assert thresholds.dedup_window_minutes == 30
    assert thresholds.stale_pr_hours == 48
