"""EventStore: read access to workspace events plus the alert store."""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from uuid import UUID

from devpulse_core.health.models import (
    AlertRecord,
    AlertSeverity,
    AlertType,
    AssignedIssue,
    BlockerMessage,
    BranchActivity,
    CandidateAlert,
    CommitFileSet,
    FileContribution,
    OpenPullRequest,
    PullRequestLifecycle,
    ensure_utc,
)
from devpulse_core.health.score import HealthScore, HealthSnapshotRecord
from devpulse_core.pathing import canonicalize_repo_relative_path


class EventStore(ABC):
    """Abstract base class for the data the heuristics pass reads and writes.

    All instants returned are timezone-aware UTC datetimes.
    """

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Scope whose writes are rolled back if it raises. The exception propagates.

        The engine wraps every rule, alert insert and derived step in one so a
        failed statement cannot poison the statements after it. Stores without
        transactions need nothing here.
        """
        yield

    @abstractmethod
    async def list_unmerged_branches(self, workspace_id: UUID) -> list[BranchActivity]:
        """Branches that have not been merged."""
        ...

    @abstractmethod
    async def list_open_pull_requests(self, workspace_id: UUID) -> list[OpenPullRequest]:
        ...

    @abstractmethod
    async def list_open_assigned_issues(self, workspace_id: UUID) -> list[AssignedIssue]:
        """Open issues that have an assignee."""
        ...

    @abstractmethod
    async def count_recent_commits_by_author(
        self, workspace_id: UUID, author: str, since: datetime
    ) -> int:
        """Commits by ``author`` at or after ``since``."""
        ...

    @abstractmethod
    async def list_recent_blocker_messages(
        self, workspace_id: UUID, since: datetime
    ) -> list[BlockerMessage]:
        """Messages flagged as blockers and sent at or after ``since``."""
        ...

    @abstractmethod
    async def list_recent_commit_file_sets(
        self,
        workspace_id: UUID,
        *,
        limit: int | None = None,
        since: datetime | None = None,
    ) -> list[CommitFileSet]:
        """Commits with their changed files, newest first."""
        ...

    @abstractmethod
    async def get_file_contributions(
        self, workspace_id: UUID, file_path: str
    ) -> list[FileContribution]:
        """Unaggregated contribution records of one file."""
        ...

    @abstractmethod
    async def insert_alert_if_absent(
        self,
        workspace_id: UUID,
        alert: CandidateAlert,
        *,
        now: datetime,
        dedup_window: timedelta,
    ) -> tuple[bool, AlertRecord]:
        """Store ``alert`` unless the same alert already exists.

        Regular alerts match on ``(type, title)`` created after
        ``now - dedup_window``. Escalations match on the escalated alert id
        regardless of age.

        Returns:
            ``(True, new_record)`` or ``(False, existing_record)``
        """
        ...

    @abstractmethod
    async def list_unresolved_critical_alerts_older_than(
        self, workspace_id: UUID, cutoff: datetime
    ) -> list[AlertRecord]:
        ...

    @abstractmethod
    async def exists_escalation_for(self, alert_id: UUID) -> bool:
        """Check if an escalation referencing ``alert_id`` exists."""
        ...

    @abstractmethod
    async def list_file_contributions(
        self, workspace_id: UUID
    ) -> dict[str, list[FileContribution]]:
        """Contribution records of every file, keyed by path."""
        ...

    @abstractmethod
    async def list_pull_request_lifecycles(
        self, workspace_id: UUID, since: datetime
    ) -> list[PullRequestLifecycle]:
        """Pull requests opened at or after ``since``."""
        ...

    @abstractmethod
    async def count_commits_since(self, workspace_id: UUID, since: datetime) -> int:
        ...

    @abstractmethod
    async def count_open_pull_requests(self, workspace_id: UUID) -> int:
        ...

    @abstractmethod
    async def count_open_issues(self, workspace_id: UUID) -> int:
        ...

    @abstractmethod
    async def list_alerts(
        self,
        workspace_id: UUID,
        *,
        unresolved_only: bool = False,
        limit: int = 50,
    ) -> list[AlertRecord]:
        """Alerts of a workspace, newest first."""
        ...

    @abstractmethod
    async def mark_alert_resolved(
        self, workspace_id: UUID, alert_id: UUID, resolved_at: datetime
    ) -> bool:
        """Resolve an unresolved alert. Returns False if unknown or already resolved."""
        ...

    @abstractmethod
    async def record_health_snapshot(
        self, workspace_id: UUID, health: HealthScore, *, taken_at: datetime
    ) -> None:
        ...

    @abstractmethod
    async def list_health_snapshots(
        self, workspace_id: UUID, *, limit: int = 30
    ) -> list[HealthSnapshotRecord]:
        """Latest snapshots, newest first."""
        ...


@dataclass
class _BranchRow:
    activity: BranchActivity
    is_merged: bool


@dataclass
class _PullRequestRow:
    lifecycle: PullRequestLifecycle
    state: str


@dataclass
class _IssueRow:
    number: int
    title: str
    state: str
    opened_at: datetime
    assignee: str | None
    assigned_at: datetime | None


@dataclass
class _MessageRow:
    message: BlockerMessage
    is_blocker: bool


class MemoryEventStore(EventStore):
    """In-memory event store.

    Suitable for development and testing. Data is lost on restart.
    """

    def __init__(self) -> None:
        self._branches: dict[UUID, list[_BranchRow]] = {}
        self._pull_requests: dict[UUID, list[_PullRequestRow]] = {}
        self._issues: dict[UUID, list[_IssueRow]] = {}
        self._commits: dict[UUID, list[CommitFileSet]] = {}
        self._messages: dict[UUID, list[_MessageRow]] = {}
        self._contributions: dict[UUID, dict[str, list[FileContribution]]] = {}
        self._alerts: dict[UUID, AlertRecord] = {}
        self._snapshots: dict[UUID, list[HealthSnapshotRecord]] = {}
        self._lock = threading.Lock()

    # Seeding

    def add_branch(
        self,
        workspace_id: UUID,
        name: str,
        *,
        author: str | None = None,
        last_commit_at: datetime | None = None,
        is_merged: bool = False,
    ) -> None:
        activity = BranchActivity(
            name=name,
            author=author,
            last_commit_at=ensure_utc(last_commit_at) if last_commit_at else None,
        )
        self._branches.setdefault(workspace_id, []).append(_BranchRow(activity, is_merged))

    def add_pull_request(
        self,
        workspace_id: UUID,
        lifecycle: PullRequestLifecycle,
        *,
        state: str = "open",
    ) -> None:
        if state not in {"open", "closed", "merged"}:
            raise ValueError(f"Unknown pull request state: {state}")
        self._pull_requests.setdefault(workspace_id, []).append(_PullRequestRow(lifecycle, state))

    def add_issue(
        self,
        workspace_id: UUID,
        number: int,
        title: str,
        *,
        opened_at: datetime,
        assignee: str | None = None,
        assigned_at: datetime | None = None,
        state: str = "open",
    ) -> None:
        self._issues.setdefault(workspace_id, []).append(
            _IssueRow(
                number=number,
                title=title,
                state=state,
                opened_at=ensure_utc(opened_at),
                assignee=assignee,
                assigned_at=ensure_utc(assigned_at) if assigned_at else None,
            )
        )

    def add_commit(self, workspace_id: UUID, commit: CommitFileSet) -> None:
        self._commits.setdefault(workspace_id, []).append(commit)

    def add_message(
        self,
        workspace_id: UUID,
        author: str,
        content: str,
        *,
        sent_at: datetime,
        is_blocker: bool = False,
    ) -> None:
        message = BlockerMessage(author=author, content=content, sent_at=ensure_utc(sent_at))
        self._messages.setdefault(workspace_id, []).append(_MessageRow(message, is_blocker))

    def add_file_contribution(
        self, workspace_id: UUID, file_path: str, contribution: FileContribution
    ) -> None:
        path = canonicalize_repo_relative_path(file_path)
        self._contributions.setdefault(workspace_id, {}).setdefault(path, []).append(contribution)

    def add_alert(self, record: AlertRecord) -> None:
        with self._lock:
            self._alerts[record.id] = record

    # Reads

    async def list_unmerged_branches(self, workspace_id: UUID) -> list[BranchActivity]:
        return [row.activity for row in self._branches.get(workspace_id, []) if not row.is_merged]

    async def list_open_pull_requests(self, workspace_id: UUID) -> list[OpenPullRequest]:
        result: list[OpenPullRequest] = []
        for row in self._pull_requests.get(workspace_id, []):
            event = row.lifecycle.event
            if row.state != "open" or event.opened_at is None:
                continue
            result.append(
                OpenPullRequest(
                    number=row.lifecycle.number,
                    title=row.lifecycle.title,
                    author=row.lifecycle.author,
                    opened_at=event.opened_at,
                    first_review_at=event.first_review_at,
                )
            )
        return result

    async def list_open_assigned_issues(self, workspace_id: UUID) -> list[AssignedIssue]:
        return [
            AssignedIssue(
                number=row.number,
                title=row.title,
                assignee=row.assignee,
                opened_at=row.opened_at,
                assigned_at=row.assigned_at,
            )
            for row in self._issues.get(workspace_id, [])
            if row.state == "open" and row.assignee
        ]

    async def count_recent_commits_by_author(
        self, workspace_id: UUID, author: str, since: datetime
    ) -> int:
        return sum(
            1
            for commit in self._commits.get(workspace_id, [])
            if commit.author == author and commit.timestamp >= since
        )

    async def list_recent_blocker_messages(
        self, workspace_id: UUID, since: datetime
    ) -> list[BlockerMessage]:
        return [
            row.message
            for row in self._messages.get(workspace_id, [])
            if row.is_blocker and row.message.sent_at is not None and row.message.sent_at >= since
        ]

    async def list_recent_commit_file_sets(
        self,
        workspace_id: UUID,
        *,
        limit: int | None = None,
        since: datetime | None = None,
    ) -> list[CommitFileSet]:
        commits = [
            commit
            for commit in self._commits.get(workspace_id, [])
            if since is None or commit.timestamp >= since
        ]
        commits.sort(key=lambda commit: commit.timestamp, reverse=True)
        return commits[:limit] if limit is not None else commits

    async def get_file_contributions(
        self, workspace_id: UUID, file_path: str
    ) -> list[FileContribution]:
        path = canonicalize_repo_relative_path(file_path)
        return list(self._contributions.get(workspace_id, {}).get(path, []))

    async def list_file_contributions(
        self, workspace_id: UUID
    ) -> dict[str, list[FileContribution]]:
        return {
            path: list(records)
            for path, records in self._contributions.get(workspace_id, {}).items()
        }

    async def list_pull_request_lifecycles(
        self, workspace_id: UUID, since: datetime
    ) -> list[PullRequestLifecycle]:
        return [
            row.lifecycle
            for row in self._pull_requests.get(workspace_id, [])
            if row.lifecycle.event.opened_at is not None and row.lifecycle.event.opened_at >= since
        ]

    async def count_commits_since(self, workspace_id: UUID, since: datetime) -> int:
        return sum(1 for commit in self._commits.get(workspace_id, []) if commit.timestamp >= since)

    async def count_open_pull_requests(self, workspace_id: UUID) -> int:
        return sum(1 for row in self._pull_requests.get(workspace_id, []) if row.state == "open")

    async def count_open_issues(self, workspace_id: UUID) -> int:
        return sum(1 for row in self._issues.get(workspace_id, []) if row.state == "open")

    # Alerts

    def _find_duplicate(
        self,
        workspace_id: UUID,
        alert: CandidateAlert,
        window_start: datetime,
    ) -> AlertRecord | None:
        """Latest matching alert. Must hold lock."""
        matches = [
            record
            for record in self._alerts.values()
            if record.workspace_id == workspace_id
            and (
                record.escalates_alert_id == alert.escalates_alert_id
                if alert.escalates_alert_id is not None
                else (
                    record.type == alert.type
                    and record.title == alert.title
                    and record.created_at > window_start
                )
            )
        ]
        if not matches:
            return None
        return max(matches, key=lambda record: record.created_at)

    async def insert_alert_if_absent(
        self,
        workspace_id: UUID,
        alert: CandidateAlert,
        *,
        now: datetime,
        dedup_window: timedelta,
    ) -> tuple[bool, AlertRecord]:
        with self._lock:
            existing = self._find_duplicate(workspace_id, alert, now - dedup_window)
            if existing is not None:
                return False, existing
            record = AlertRecord(
                id=uuid.uuid4(),
                workspace_id=workspace_id,
                type=alert.type,
                severity=alert.severity,
                title=alert.title,
                description=alert.description,
                metadata=dict(alert.metadata),
                created_at=ensure_utc(now),
                escalates_alert_id=alert.escalates_alert_id,
            )
            self._alerts[record.id] = record
            return True, record

    async def list_unresolved_critical_alerts_older_than(
        self, workspace_id: UUID, cutoff: datetime
    ) -> list[AlertRecord]:
        with self._lock:
            records = [
                record
                for record in self._alerts.values()
                if record.workspace_id == workspace_id
                and record.severity == AlertSeverity.CRITICAL
                and not record.resolved
                and record.created_at < cutoff
            ]
        records.sort(key=lambda record: record.created_at)
        return records

    async def exists_escalation_for(self, alert_id: UUID) -> bool:
        with self._lock:
            return any(
                record.type == AlertType.ESCALATION and record.escalates_alert_id == alert_id
                for record in self._alerts.values()
            )

    async def list_alerts(
        self,
        workspace_id: UUID,
        *,
        unresolved_only: bool = False,
        limit: int = 50,
    ) -> list[AlertRecord]:
        with self._lock:
            records = [
                replace(record)
                for record in self._alerts.values()
                if record.workspace_id == workspace_id and not (unresolved_only and record.resolved)
            ]
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records[:limit]

    async def mark_alert_resolved(
        self, workspace_id: UUID, alert_id: UUID, resolved_at: datetime
    ) -> bool:
        with self._lock:
            record = self._alerts.get(alert_id)
            if record is None or record.workspace_id != workspace_id or record.resolved:
                return False
            record.resolved = True
            record.resolved_at = ensure_utc(resolved_at)
            return True

    # Health trend

    async def record_health_snapshot(
        self, workspace_id: UUID, health: HealthScore, *, taken_at: datetime
    ) -> None:
        snapshot = HealthSnapshotRecord(health=health, taken_at=ensure_utc(taken_at))
        with self._lock:
            self._snapshots.setdefault(workspace_id, []).append(snapshot)

    async def list_health_snapshots(
        self, workspace_id: UUID, *, limit: int = 30
    ) -> list[HealthSnapshotRecord]:
        with self._lock:
            snapshots = list(self._snapshots.get(workspace_id, []))
        snapshots.sort(key=lambda snapshot: snapshot.taken_at, reverse=True)
        return snapshots[:limit]
