"""Cycle-time phases of a pull request.

Phases, in whole seconds:

- coding: first commit -> opened
- pickup: opened -> first review
- review: first review -> closed (merge wins over close)
- deployment: merged -> deployed (requires an actual merge)
- total: opened -> closed

A phase with a missing endpoint is ``None``. Negative durations are kept.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from devpulse_core.health.models import CycleTimeMetrics, LifecycleEvent
from devpulse_core.health.thresholds import HeuristicThresholds


def _seconds_between(start: datetime | None, end: datetime | None) -> int | None:
    if start is None or end is None:
        return None
    return math.floor((end - start).total_seconds())


def _exceeds(value: int | None, limit: int) -> bool | None:
    if value is None:
        return None
    return value > limit


def calculate_cycle_time(
    event: LifecycleEvent,
    thresholds: HeuristicThresholds | None = None,
) -> CycleTimeMetrics:
    """Compute phase durations and threshold flags for one lifecycle."""
    limits = thresholds or HeuristicThresholds()
    closed_at = event.closed_instant

    coding_time = _seconds_between(event.first_commit_at, event.opened_at)
    pickup_time = _seconds_between(event.opened_at, event.first_review_at)
    review_time = _seconds_between(event.first_review_at, closed_at)
    deployment_time = _seconds_between(event.merged_at, event.deployed_at)
    total_cycle_time = _seconds_between(event.opened_at, closed_at)

    return CycleTimeMetrics(
        coding_time=coding_time,
        pickup_time=pickup_time,
        review_time=review_time,
        deployment_time=deployment_time,
        total_cycle_time=total_cycle_time,
        exceeds_threshold=bool(_exceeds(total_cycle_time, limits.cycle_time_seconds)),
        exceeds_coding_threshold=_exceeds(coding_time, limits.coding_time_seconds),
        exceeds_deployment_threshold=_exceeds(deployment_time, limits.deployment_time_seconds),
    )


def _average(values: list[int]) -> int | None:
    if not values:
        return None
    return round(sum(values) / len(values))


def summarize_cycle_times(metrics: Iterable[CycleTimeMetrics]) -> dict[str, Any]:
    """Average each phase over the items where it is present."""
    items = list(metrics)
    phases = ("coding_time", "pickup_time", "review_time", "deployment_time", "total_cycle_time")
    summary: dict[str, Any] = {"count": len(items)}
    for phase in phases:
        present = [value for item in items if (value := getattr(item, phase)) is not None]
        summary[f"avg_{phase}"] = _average(present)
    summary["exceeding_threshold"] = sum(1 for item in items if item.exceeds_threshold)
    return summary
