"""Tunable thresholds passed into every heuristic evaluator."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from devpulse_core.settings import Settings


class HeuristicThresholds(BaseModel):
    """Windows and limits used by the rules, calculators and alert controller."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    inactive_branch_days: int = Field(default=3, ge=1)
    stale_pr_hours: int = Field(default=48, ge=1)
    unworked_assignment_hours: int = Field(default=48, ge=1)
    blocker_window_hours: int = Field(default=24, ge=1)
    blocker_min_authors: int = Field(default=2, ge=1)
    wip_threshold: int = Field(default=3, ge=1)
    cycle_time_hours: int = Field(default=72, ge=1)
    coding_time_hours: int = Field(default=48, ge=1)
    deployment_time_hours: int = Field(default=24, ge=1)
    commit_window: int = Field(default=200, ge=1)
    max_cycle_alerts: int = Field(default=3, ge=1)
    overlap_window_hours: int = Field(default=48, ge=1)
    overlap_min_authors: int = Field(default=3, ge=2)
    escalation_delay_hours: int = Field(default=4, ge=1)
    dedup_window_minutes: int = Field(default=60, ge=1)
    knowledge_concentration_percent: float = Field(default=80.0, gt=0, le=100)
    cycle_time_lookback_days: int = Field(default=30, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> HeuristicThresholds:
        """Build thresholds from the ``heuristics_*`` settings fields."""
        values = {
            name: getattr(settings, f"heuristics_{name}")
            for name in cls.model_fields
            if hasattr(settings, f"heuristics_{name}")
        }
        return cls(**values)

    @property
    def inactive_branch_age(self) -> timedelta:
        return timedelta(days=self.inactive_branch_days)

    @property
    def stale_pr_age(self) -> timedelta:
        return timedelta(hours=self.stale_pr_hours)

    @property
    def unworked_assignment_age(self) -> timedelta:
        return timedelta(hours=self.unworked_assignment_hours)

    @property
    def blocker_window(self) -> timedelta:
        return timedelta(hours=self.blocker_window_hours)

    @property
    def overlap_window(self) -> timedelta:
        return timedelta(hours=self.overlap_window_hours)

    @property
    def escalation_delay(self) -> timedelta:
        return timedelta(hours=self.escalation_delay_hours)

    @property
    def dedup_window(self) -> timedelta:
        return timedelta(minutes=self.dedup_window_minutes)

    @property
    def cycle_time_lookback(self) -> timedelta:
        return timedelta(days=self.cycle_time_lookback_days)

    @property
    def cycle_time_seconds(self) -> int:
        return self.cycle_time_hours * 3600

    @property
    def coding_time_seconds(self) -> int:
        return self.coding_time_hours * 3600

    @property
    def deployment_time_seconds(self) -> int:
        return self.deployment_time_hours * 3600
