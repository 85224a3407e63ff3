"""Domain records consumed and produced by the heuristics engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from devpulse_core.pathing import unique_paths


# Width of alerts.title
ALERT_TITLE_MAX_LENGTH = 500
TITLE_ELLIPSIS = "..."


class HeuristicsError(Exception):
    """Base error for the heuristics engine."""


class AlertType(str, Enum):
    """Kinds of alert the heuristics pass can raise."""

    INACTIVE_BRANCH = "inactive_branch"
    STALE_PR = "stale_pr"
    ASSIGNED_ISSUE_NO_COMMITS = "assigned_issue_no_commits"
    MULTIPLE_BLOCKERS = "multiple_blockers"
    HIGH_WIP = "high_wip"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    DEPENDENCY_OVERLAP = "dependency_overlap"
    ESCALATION = "escalation"


class AlertSeverity(str, Enum):
    """Alert severity, lowest first."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are taken to be UTC already; SQLite hands them back that way.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_instant(value: Any) -> datetime | None:
    """Parse an optional ISO-8601 instant.

    ``None`` and empty strings mean "absent". Anything else that is not a
    datetime or a parseable string raises ``ValueError``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"Malformed timestamp: {value!r}") from exc
        return ensure_utc(parsed)
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def _non_negative_int(value: Any, field_name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}") from exc
    if number < 0:
        raise ValueError(f"{field_name} must not be negative, got {number}")
    return number


@dataclass(frozen=True)
class LifecycleEvent:
    """Lifecycle instants of one pull request. Merge wins over close."""

    opened_at: datetime | None = None
    first_commit_at: datetime | None = None
    first_review_at: datetime | None = None
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    deployed_at: datetime | None = None

    @property
    def closed_instant(self) -> datetime | None:
        return self.merged_at if self.merged_at is not None else self.closed_at

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> LifecycleEvent:
        return cls(
            opened_at=parse_instant(payload.get("opened_at")),
            first_commit_at=parse_instant(payload.get("first_commit_at")),
            first_review_at=parse_instant(payload.get("first_review_at")),
            merged_at=parse_instant(payload.get("merged_at")),
            closed_at=parse_instant(payload.get("closed_at")),
            deployed_at=parse_instant(payload.get("deployed_at")),
        )


@dataclass(frozen=True)
class CycleTimeMetrics:
    """Phase durations in whole seconds (``None`` when a phase is absent)."""

    coding_time: int | None
    pickup_time: int | None
    review_time: int | None
    deployment_time: int | None
    total_cycle_time: int | None
    exceeds_threshold: bool
    exceeds_coding_threshold: bool | None
    exceeds_deployment_threshold: bool | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "coding_time": self.coding_time,
            "pickup_time": self.pickup_time,
            "review_time": self.review_time,
            "deployment_time": self.deployment_time,
            "total_cycle_time": self.total_cycle_time,
            "exceeds_threshold": self.exceeds_threshold,
            "exceeds_coding_threshold": self.exceeds_coding_threshold,
            "exceeds_deployment_threshold": self.exceeds_deployment_threshold,
        }


@dataclass(frozen=True)
class PullRequestLifecycle:
    number: int
    title: str
    author: str
    event: LifecycleEvent


@dataclass(frozen=True)
class FileContribution:
    """Lines one author contributed to a file."""

    author: str
    lines_added: int = 0
    lines_modified: int = 0

    @property
    def lines(self) -> int:
        return self.lines_added + self.lines_modified

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> FileContribution:
        return cls(
            author=str(payload.get("author") or payload.get("author_login") or "unknown"),
            lines_added=_non_negative_int(payload.get("lines_added"), "lines_added"),
            lines_modified=_non_negative_int(payload.get("lines_modified"), "lines_modified"),
        )


@dataclass(frozen=True)
class KnowledgeConcentration:
    bus_factor: int
    dominant_author: str | None
    concentration_percent: float
    author_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "bus_factor": self.bus_factor,
            "dominant_author": self.dominant_author,
            "concentration_percent": round(self.concentration_percent, 2),
            "author_count": self.author_count,
        }


@dataclass(frozen=True)
class FileKnowledge:
    """Knowledge concentration of one file plus the critical-file verdict."""

    file_path: str
    concentration: KnowledgeConcentration
    is_critical: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "is_critical": self.is_critical,
            **self.concentration.to_dict(),
        }


@dataclass(frozen=True)
class CommitFileSet:
    """Files changed together in one commit, in commit order."""

    commit_id: str
    files: tuple[str, ...]
    author: str
    timestamp: datetime

    @classmethod
    def create(
        cls,
        commit_id: str,
        files: list[str] | tuple[str, ...],
        author: str,
        timestamp: datetime,
    ) -> CommitFileSet:
        return cls(
            commit_id=commit_id,
            files=unique_paths(files),
            author=author,
            timestamp=ensure_utc(timestamp),
        )


@dataclass(frozen=True)
class BranchActivity:
    name: str
    author: str | None
    last_commit_at: datetime | None


@dataclass(frozen=True)
class OpenPullRequest:
    number: int
    title: str
    author: str
    opened_at: datetime
    first_review_at: datetime | None = None


@dataclass(frozen=True)
class AssignedIssue:
    number: int
    title: str
    assignee: str
    opened_at: datetime
    assigned_at: datetime | None = None

    @property
    def assignment_started_at(self) -> datetime:
        return self.assigned_at or self.opened_at


@dataclass(frozen=True)
class BlockerMessage:
    author: str
    content: str
    sent_at: datetime | None = None


@dataclass(frozen=True)
class CandidateAlert:
    """Alert produced by a rule, before dedup decides whether it is stored."""

    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
    escalates_alert_id: UUID | None = None

    def __post_init__(self) -> None:
        # Titles embed branch names and file paths of arbitrary length
        if len(self.title) > ALERT_TITLE_MAX_LENGTH:
            clipped = self.title[: ALERT_TITLE_MAX_LENGTH - len(TITLE_ELLIPSIS)] + TITLE_ELLIPSIS
            object.__setattr__(self, "title", clipped)

    @property
    def dedup_identity(self) -> str:
        """Key that identifies "the same alert" inside one workspace."""
        if self.escalates_alert_id is not None:
            return f"escalation:{self.escalates_alert_id}"
        return f"{self.type.value}:{self.title}"


@dataclass
class AlertRecord:
    """A persisted alert. Only ``resolved``/``resolved_at`` change after creation."""

    id: UUID
    workspace_id: UUID
    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    metadata: dict[str, Any]
    created_at: datetime
    resolved: bool = False
    resolved_at: datetime | None = None
    escalates_alert_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "workspace_id": str(self.workspace_id),
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "escalates_alert_id": str(self.escalates_alert_id) if self.escalates_alert_id else None,
        }
