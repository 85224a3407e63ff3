"""SQLAlchemy-backed event store.

Works on PostgreSQL (asyncpg) and SQLite (aiosqlite). Alert inserts rely on
the ``uq_alert_dedup`` constraint so concurrent passes cannot create the same
alert twice in one bucket; a conflicting insert is reported as "already
exists". On PostgreSQL a transaction-scoped advisory lock per
``(workspace_id, dedup_key)`` also serializes passes that straddle a bucket
boundary, so the rolling-window lookup of the later pass sees the earlier
pass's row once it commits. SQLite allows a single writer and needs no lock.
"""

from __future__ import annotations

import hashlib
import logging
import math
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import BigInteger, func, literal, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

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
    LifecycleEvent,
    OpenPullRequest,
    PullRequestLifecycle,
    ensure_utc,
)
from devpulse_core.health.score import HealthScore, HealthSnapshotRecord
from devpulse_core.health.store import EventStore
from devpulse_core.models import (
    Alert,
    Branch,
    ChatMessage,
    Commit,
    FileAuthorship,
    HealthSnapshot,
    Issue,
    IssueState,
    PullRequest,
    PullRequestState,
)
from devpulse_core.pathing import canonicalize_repo_relative_path
from devpulse_core.telemetry import trace_db_operation

logger = logging.getLogger(__name__)


def _utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def alert_dedup_key(alert: CandidateAlert) -> str:
    """Stable key stored in ``alerts.dedup_key``."""
    if alert.escalates_alert_id is not None:
        return alert.dedup_identity
    return hashlib.sha256(alert.dedup_identity.encode("utf-8")).hexdigest()


def alert_dedup_bucket(alert: CandidateAlert, now: datetime, dedup_window: timedelta) -> int:
    """Window bucket of ``now``. Escalations share bucket 0 to stay unique per original."""
    if alert.escalates_alert_id is not None:
        return 0
    return math.floor(now.timestamp() / dedup_window.total_seconds())


def dedup_lock_key(workspace_id: UUID, dedup_key: str) -> int:
    """Signed 64-bit key for ``pg_advisory_xact_lock``."""
    digest = hashlib.sha256(f"{workspace_id}:{dedup_key}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def alert_to_record(row: Alert) -> AlertRecord:
    return AlertRecord(
        id=row.id,
        workspace_id=row.workspace_id,
        type=AlertType(row.type),
        severity=AlertSeverity(row.severity),
        title=row.title,
        description=row.description,
        metadata=dict(row.meta or {}),
        created_at=ensure_utc(row.created_at),
        resolved=row.resolved,
        resolved_at=_utc(row.resolved_at),
        escalates_alert_id=row.escalated_alert_id,
    )


class SqlEventStore(EventStore):
    """Event store over the ORM tables, bound to one ``AsyncSession``.

    The caller owns the transaction (see ``devpulse_core.database.get_session``).
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def _dialect_name(self) -> str:
        return self._session.get_bind().dialect.name

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # A failed statement aborts the whole PostgreSQL transaction unless
        # it ran inside a savepoint that is rolled back
        async with self._session.begin_nested():
            yield

    async def list_unmerged_branches(self, workspace_id: UUID) -> list[BranchActivity]:
        result = await self._session.execute(
            select(Branch)
            .where(Branch.workspace_id == workspace_id, Branch.is_merged.is_(False))
            .order_by(Branch.name)
        )
        return [
            BranchActivity(
                name=row.name,
                author=row.author_login,
                last_commit_at=_utc(row.last_commit_at),
            )
            for row in result.scalars().all()
        ]

    async def list_open_pull_requests(self, workspace_id: UUID) -> list[OpenPullRequest]:
        result = await self._session.execute(
            select(PullRequest)
            .where(
                PullRequest.workspace_id == workspace_id,
                PullRequest.state == PullRequestState.OPEN,
            )
            .order_by(PullRequest.number)
        )
        return [
            OpenPullRequest(
                number=row.number,
                title=row.title,
                author=row.author_login,
                opened_at=ensure_utc(row.opened_at),
                first_review_at=_utc(row.first_review_at),
            )
            for row in result.scalars().all()
        ]

    async def list_open_assigned_issues(self, workspace_id: UUID) -> list[AssignedIssue]:
        result = await self._session.execute(
            select(Issue)
            .where(
                Issue.workspace_id == workspace_id,
                Issue.state == IssueState.OPEN,
                Issue.assignee_login.is_not(None),
            )
            .order_by(Issue.number)
        )
        return [
            AssignedIssue(
                number=row.number,
                title=row.title,
                assignee=row.assignee_login,
                opened_at=ensure_utc(row.opened_at),
                assigned_at=_utc(row.assigned_at),
            )
            for row in result.scalars().all()
        ]

    async def count_recent_commits_by_author(
        self, workspace_id: UUID, author: str, since: datetime
    ) -> int:
        result = await self._session.execute(
            select(func.count(Commit.id)).where(
                Commit.workspace_id == workspace_id,
                Commit.author_login == author,
                Commit.committed_at >= since,
            )
        )
        return int(result.scalar_one())

    async def list_recent_blocker_messages(
        self, workspace_id: UUID, since: datetime
    ) -> list[BlockerMessage]:
        result = await self._session.execute(
            select(ChatMessage)
            .where(
                ChatMessage.workspace_id == workspace_id,
                ChatMessage.is_blocker.is_(True),
                ChatMessage.sent_at >= since,
            )
            .order_by(ChatMessage.sent_at)
        )
        return [
            BlockerMessage(
                author=row.author_username,
                content=row.content,
                sent_at=ensure_utc(row.sent_at),
            )
            for row in result.scalars().all()
        ]

    async def list_recent_commit_file_sets(
        self,
        workspace_id: UUID,
        *,
        limit: int | None = None,
        since: datetime | None = None,
    ) -> list[CommitFileSet]:
        stmt = (
            select(Commit)
            .where(Commit.workspace_id == workspace_id)
            .options(selectinload(Commit.files))
            .order_by(Commit.committed_at.desc(), Commit.sha)
        )
        if since is not None:
            stmt = stmt.where(Commit.committed_at >= since)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [
            CommitFileSet.create(
                commit_id=row.sha,
                files=[commit_file.path for commit_file in row.files],
                author=row.author_login,
                timestamp=row.committed_at,
            )
            for row in result.scalars().all()
        ]

    async def get_file_contributions(
        self, workspace_id: UUID, file_path: str
    ) -> list[FileContribution]:
        result = await self._session.execute(
            select(FileAuthorship)
            .where(
                FileAuthorship.workspace_id == workspace_id,
                FileAuthorship.file_path == canonicalize_repo_relative_path(file_path),
            )
            .order_by(FileAuthorship.author_login, FileAuthorship.id)
        )
        return [
            FileContribution(
                author=row.author_login,
                lines_added=row.lines_added,
                lines_modified=row.lines_modified,
            )
            for row in result.scalars().all()
        ]

    async def list_file_contributions(
        self, workspace_id: UUID
    ) -> dict[str, list[FileContribution]]:
        result = await self._session.execute(
            select(FileAuthorship)
            .where(FileAuthorship.workspace_id == workspace_id)
            .order_by(FileAuthorship.file_path, FileAuthorship.author_login, FileAuthorship.id)
        )
        contributions: dict[str, list[FileContribution]] = {}
        for row in result.scalars().all():
            contributions.setdefault(row.file_path, []).append(
                FileContribution(
                    author=row.author_login,
                    lines_added=row.lines_added,
                    lines_modified=row.lines_modified,
                )
            )
        return contributions

    async def list_pull_request_lifecycles(
        self, workspace_id: UUID, since: datetime
    ) -> list[PullRequestLifecycle]:
        result = await self._session.execute(
            select(PullRequest)
            .where(PullRequest.workspace_id == workspace_id, PullRequest.opened_at >= since)
            .order_by(PullRequest.number)
        )
        return [
            PullRequestLifecycle(
                number=row.number,
                title=row.title,
                author=row.author_login,
                event=LifecycleEvent(
                    opened_at=_utc(row.opened_at),
                    first_commit_at=_utc(row.first_commit_at),
                    first_review_at=_utc(row.first_review_at),
                    merged_at=_utc(row.merged_at),
                    closed_at=_utc(row.closed_at),
                    deployed_at=_utc(row.deployed_at),
                ),
            )
            for row in result.scalars().all()
        ]

    async def count_commits_since(self, workspace_id: UUID, since: datetime) -> int:
        result = await self._session.execute(
            select(func.count(Commit.id)).where(
                Commit.workspace_id == workspace_id, Commit.committed_at >= since
            )
        )
        return int(result.scalar_one())

    async def count_open_pull_requests(self, workspace_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count(PullRequest.id)).where(
                PullRequest.workspace_id == workspace_id,
                PullRequest.state == PullRequestState.OPEN,
            )
        )
        return int(result.scalar_one())

    async def count_open_issues(self, workspace_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count(Issue.id)).where(
                Issue.workspace_id == workspace_id, Issue.state == IssueState.OPEN
            )
        )
        return int(result.scalar_one())

    # Alerts

    async def _find_duplicate(
        self,
        workspace_id: UUID,
        alert: CandidateAlert,
        window_start: datetime,
    ) -> Alert | None:
        stmt = select(Alert).where(Alert.workspace_id == workspace_id)
        if alert.escalates_alert_id is not None:
            stmt = stmt.where(Alert.escalated_alert_id == alert.escalates_alert_id)
        else:
            stmt = stmt.where(
                Alert.type == alert.type,
                Alert.title == alert.title,
                Alert.created_at > window_start,
            )
        result = await self._session.execute(stmt.order_by(Alert.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    def _insert(self):
        if self._dialect_name == "postgresql":
            return pg_insert(Alert)
        return sqlite_insert(Alert)

    async def insert_alert_if_absent(
        self,
        workspace_id: UUID,
        alert: CandidateAlert,
        *,
        now: datetime,
        dedup_window: timedelta,
    ) -> tuple[bool, AlertRecord]:
        now = ensure_utc(now)
        dedup_key = alert_dedup_key(alert)
        if self._dialect_name == "postgresql":
            lock_key = literal(dedup_lock_key(workspace_id, dedup_key), BigInteger)
            await self._session.execute(select(func.pg_advisory_xact_lock(lock_key)))
        existing = await self._find_duplicate(workspace_id, alert, now - dedup_window)
        if existing is not None:
            return False, alert_to_record(existing)

        dedup_bucket = alert_dedup_bucket(alert, now, dedup_window)
        stmt = (
            self._insert()
            .values(
                id=uuid.uuid4(),
                workspace_id=workspace_id,
                type=alert.type,
                severity=alert.severity,
                title=alert.title,
                description=alert.description,
                meta=dict(alert.metadata),
                created_at=now,
                resolved=False,
                dedup_key=dedup_key,
                dedup_bucket=dedup_bucket,
                escalated_alert_id=alert.escalates_alert_id,
            )
            .on_conflict_do_nothing(
                index_elements=[Alert.workspace_id, Alert.dedup_key, Alert.dedup_bucket]
            )
            .returning(Alert.id)
        )
        async with trace_db_operation("INSERT", "alerts"):
            alert_id = (await self._session.execute(stmt)).scalar_one_or_none()

        if alert_id is None:
            # Lost the race against a concurrent pass
            result = await self._session.execute(
                select(Alert).where(
                    Alert.workspace_id == workspace_id,
                    Alert.dedup_key == dedup_key,
                    Alert.dedup_bucket == dedup_bucket,
                )
            )
            logger.debug("Alert insert conflicted for %s", alert.title)
            return False, alert_to_record(result.scalar_one())

        row = await self._session.get(Alert, alert_id)
        return True, alert_to_record(row)

    async def list_unresolved_critical_alerts_older_than(
        self, workspace_id: UUID, cutoff: datetime
    ) -> list[AlertRecord]:
        result = await self._session.execute(
            select(Alert)
            .where(
                Alert.workspace_id == workspace_id,
                Alert.severity == AlertSeverity.CRITICAL,
                Alert.resolved.is_(False),
                Alert.created_at < cutoff,
            )
            .order_by(Alert.created_at)
        )
        return [alert_to_record(row) for row in result.scalars().all()]

    async def exists_escalation_for(self, alert_id: UUID) -> bool:
        result = await self._session.execute(
            select(Alert.id)
            .where(Alert.escalated_alert_id == alert_id, Alert.type == AlertType.ESCALATION)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_alerts(
        self,
        workspace_id: UUID,
        *,
        unresolved_only: bool = False,
        limit: int = 50,
    ) -> list[AlertRecord]:
        stmt = select(Alert).where(Alert.workspace_id == workspace_id)
        if unresolved_only:
            stmt = stmt.where(Alert.resolved.is_(False))
        result = await self._session.execute(stmt.order_by(Alert.created_at.desc()).limit(limit))
        return [alert_to_record(row) for row in result.scalars().all()]

    async def mark_alert_resolved(
        self, workspace_id: UUID, alert_id: UUID, resolved_at: datetime
    ) -> bool:
        async with trace_db_operation("UPDATE", "alerts") as span:
            result = await self._session.execute(
                update(Alert)
                .where(
                    Alert.id == alert_id,
                    Alert.workspace_id == workspace_id,
                    Alert.resolved.is_(False),
                )
                .values(resolved=True, resolved_at=ensure_utc(resolved_at))
            )
            span.set_attribute("db.rows_affected", result.rowcount)
        return result.rowcount > 0

    async def record_health_snapshot(
        self, workspace_id: UUID, health: HealthScore, *, taken_at: datetime
    ) -> None:
        async with trace_db_operation("INSERT", "health_snapshots"):
            self._session.add(
                HealthSnapshot(
                    workspace_id=workspace_id,
                    score=health.score,
                    commit_score=health.commit_score,
                    pr_score=health.pr_score,
                    issue_score=health.issue_score,
                    bus_factor_score=health.bus_factor_score,
                    alert_penalty=health.alert_penalty,
                    taken_at=ensure_utc(taken_at),
                )
            )
            await self._session.flush()

    async def list_health_snapshots(
        self, workspace_id: UUID, *, limit: int = 30
    ) -> list[HealthSnapshotRecord]:
        result = await self._session.execute(
            select(HealthSnapshot)
            .where(HealthSnapshot.workspace_id == workspace_id)
            .order_by(HealthSnapshot.taken_at.desc())
            .limit(limit)
        )
        return [
            HealthSnapshotRecord(
                health=HealthScore(
                    score=row.score,
                    commit_score=row.commit_score,
                    pr_score=row.pr_score,
                    issue_score=row.issue_score,
                    bus_factor_score=row.bus_factor_score,
                    alert_penalty=row.alert_penalty,
                ),
                taken_at=ensure_utc(row.taken_at),
            )
            for row in result.scalars().all()
        ]
