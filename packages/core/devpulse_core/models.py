"""Database models for workspaces, version-control events and alerts."""

import enum
import uuid
from datetime import datetime

from devpulse_core.database import Base
from devpulse_core.health.models import ALERT_TITLE_MAX_LENGTH, AlertSeverity, AlertType
from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship


class PullRequestState(enum.Enum):
    """State of a pull request."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class IssueState(enum.Enum):
    """State of an issue."""

    OPEN = "open"
    CLOSED = "closed"


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Workspace(Base):
    """A team workspace whose repository and chat events are analysed."""

    __tablename__ = "workspaces"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    heuristics_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    heuristics_interval_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_heuristics_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_heuristics_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Branch(Base):
    """A repository branch and its most recent commit."""

    __tablename__ = "branches"
    __table_args__ = (UniqueConstraint("workspace_id", "name", name="uq_branch_workspace_name"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    author_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_merged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class PullRequest(Base):
    """A pull request with its review lifecycle timestamps."""

    __tablename__ = "pull_requests"
    __table_args__ = (
        UniqueConstraint("workspace_id", "number", name="uq_pull_request_workspace_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    author_login: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    state: Mapped[PullRequestState] = mapped_column(
        Enum(PullRequestState, name="pull_request_state", values_callable=_values),
        nullable=False,
    )
    first_commit_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_review_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    merged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deployed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Issue(Base):
    """A tracked issue and its assignee."""

    __tablename__ = "issues"
    __table_args__ = (UniqueConstraint("workspace_id", "number", name="uq_issue_workspace_number"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    state: Mapped[IssueState] = mapped_column(
        Enum(IssueState, name="issue_state", values_callable=_values),
        nullable=False,
    )
    assignee_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Commit(Base):
    """A commit and the ordered list of files it changed."""

    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("workspace_id", "sha", name="uq_commit_workspace_sha"),
        Index("ix_commits_workspace_committed", "workspace_id", "committed_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    sha: Mapped[str] = mapped_column(String(64), nullable=False)
    author_login: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    committed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    files: Mapped[list["CommitFile"]] = relationship(
        back_populates="commit",
        cascade="all, delete-orphan",
        order_by="CommitFile.position",
    )


class CommitFile(Base):
    """One changed path of a commit."""

    __tablename__ = "commit_files"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    commit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("commits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    path: Mapped[str] = mapped_column(String(2048), nullable=False)

    commit: Mapped["Commit"] = relationship(back_populates="files")


class ChatMessage(Base):
    """A chat message; ``is_blocker`` is set by the ingestion side."""

    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_workspace_sent", "workspace_id", "sent_at"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    author_username: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_blocker: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class FileAuthorship(Base):
    """Lines an author contributed to one file. Several rows per author are allowed."""

    __tablename__ = "file_authorship"
    __table_args__ = (Index("ix_file_authorship_workspace_path", "workspace_id", "file_path"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    file_path: Mapped[str] = mapped_column(String(2048), nullable=False)
    author_login: Mapped[str] = mapped_column(String(255), nullable=False)
    lines_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lines_modified: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    commit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Alert(Base):
    """An alert raised by the heuristics pass.

    ``dedup_key``/``dedup_bucket`` back the at-most-once guarantee: the unique
    constraint makes concurrent inserts of the same alert collapse into one row.
    """

    __tablename__ = "alerts"
    __table_args__ = (
        UniqueConstraint("workspace_id", "dedup_key", "dedup_bucket", name="uq_alert_dedup"),
        Index("ix_alerts_workspace_created", "workspace_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[AlertType] = mapped_column(
        Enum(AlertType, name="alert_type", values_callable=_values),
        nullable=False,
    )
    severity: Mapped[AlertSeverity] = mapped_column(
        Enum(AlertSeverity, name="alert_severity", values_callable=_values),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(ALERT_TITLE_MAX_LENGTH), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dedup_key: Mapped[str] = mapped_column(String(128), nullable=False)
    dedup_bucket: Mapped[int] = mapped_column(BigInteger, nullable=False)
    escalated_alert_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("alerts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )


class HealthSnapshot(Base):
    """Health score of a workspace at the end of one heuristics pass."""

    __tablename__ = "health_snapshots"
    __table_args__ = (Index("ix_health_snapshots_workspace_taken", "workspace_id", "taken_at"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    commit_score: Mapped[int] = mapped_column(Integer, nullable=False)
    pr_score: Mapped[int] = mapped_column(Integer, nullable=False)
    issue_score: Mapped[int] = mapped_column(Integer, nullable=False)
    bus_factor_score: Mapped[int] = mapped_column(Integer, nullable=False)
    alert_penalty: Mapped[int] = mapped_column(Integer, nullable=False)
    taken_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
