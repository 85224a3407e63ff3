"""Application settings using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Database
    database_url: str | None = None

    # OpenTelemetry
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry traces and metrics export",
    )
    otel_service_name: str = Field(
        default="devpulse",
        description="Base service name reported to the collector",
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP gRPC endpoint",
    )
    otel_traces_sampler: str = Field(
        default="parentbased_traceidratio",
        description="Sampler: always_on, always_off, traceidratio, parentbased_traceidratio",
    )
    otel_traces_sampler_arg: float = Field(
        default=1.0,
        description="Sampling ratio for ratio-based samplers",
    )

    # Scheduling. Prefect reads PREFECT_API_URL itself.
    heuristics_schedule_minutes: int = Field(
        default=15,
        description="How often the worker checks for workspaces due for a heuristics pass",
    )
    heuristics_default_interval_minutes: int = Field(
        default=60,
        description="Interval between passes for workspaces without an explicit interval",
    )

    # Heuristic thresholds
    heuristics_inactive_branch_days: int = Field(
        default=3,
        description="Days without commits before an unmerged branch is inactive",
    )
    heuristics_stale_pr_hours: int = Field(
        default=48,
        description="Hours an open PR may wait for a first review",
    )
    heuristics_unworked_assignment_hours: int = Field(
        default=48,
        description="Hours an assigned issue may go without commits from the assignee",
    )
    heuristics_blocker_window_hours: int = Field(
        default=24,
        description="Window for clustering blocker messages",
    )
    heuristics_blocker_min_authors: int = Field(
        default=2,
        description="Distinct blocker authors needed to raise a critical alert",
    )
    heuristics_wip_threshold: int = Field(
        default=3,
        description="Open PRs per author above which WIP is considered too high",
    )
    heuristics_cycle_time_hours: int = Field(default=72)
    heuristics_coding_time_hours: int = Field(default=48)
    heuristics_deployment_time_hours: int = Field(default=24)
    heuristics_commit_window: int = Field(
        default=200,
        description="Most recent commits used to build the co-modification graph",
    )
    heuristics_max_cycle_alerts: int = Field(default=3)
    heuristics_overlap_window_hours: int = Field(default=48)
    heuristics_overlap_min_authors: int = Field(default=3)
    heuristics_escalation_delay_hours: int = Field(
        default=4,
        description="Hours a critical alert may stay unresolved before escalation",
    )
    heuristics_dedup_window_minutes: int = Field(
        default=60,
        description="Rolling window in which identical alerts are not re-created",
    )
    heuristics_knowledge_concentration_percent: float = Field(default=80.0)
    heuristics_cycle_time_lookback_days: int = Field(default=30)


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
