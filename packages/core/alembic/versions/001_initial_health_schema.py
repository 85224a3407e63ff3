"""Initial schema: workspaces, version-control events, chat messages, alerts
and health snapshots.

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ALERT_TYPES = (
    "inactive_branch",
    "stale_pr",
    "assigned_issue_no_commits",
    "multiple_blockers",
    "high_wip",
    "circular_dependency",
    "dependency_overlap",
    "escalation",
)
ALERT_SEVERITIES = ("info", "warning", "critical")


def _workspace_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("heuristics_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("heuristics_interval_minutes", sa.Integer(), nullable=True),
        sa.Column("next_heuristics_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_heuristics_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "branches",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("author_login", sa.String(255), nullable=True),
        sa.Column("last_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_merged", sa.Boolean(), server_default=sa.false(), nullable=False),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "name", name="uq_branch_workspace_name"),
    )

    op.create_table(
        "pull_requests",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("author_login", sa.String(255), nullable=False),
        sa.Column(
            "state",
            sa.Enum("open", "closed", "merged", name="pull_request_state"),
            nullable=False,
        ),
        sa.Column("first_commit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("first_review_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=True),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "number", name="uq_pull_request_workspace_number"),
    )
    op.create_index("ix_pull_requests_author_login", "pull_requests", ["author_login"])

    op.create_table(
        "issues",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("state", sa.Enum("open", "closed", name="issue_state"), nullable=False),
        sa.Column("assignee_login", sa.String(255), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "number", name="uq_issue_workspace_number"),
    )

    op.create_table(
        "commits",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("sha", sa.String(64), nullable=False),
        sa.Column("author_login", sa.String(255), nullable=False),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "sha", name="uq_commit_workspace_sha"),
    )
    op.create_index("ix_commits_author_login", "commits", ["author_login"])
    op.create_index("ix_commits_workspace_committed", "commits", ["workspace_id", "committed_at"])

    op.create_table(
        "commit_files",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("commit_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("path", sa.String(2048), nullable=False),
        sa.ForeignKeyConstraint(["commit_id"], ["commits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_commit_files_commit_id", "commit_files", ["commit_id"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("author_username", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_blocker", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chat_messages_workspace_sent", "chat_messages", ["workspace_id", "sent_at"])

    op.create_table(
        "file_authorship",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("file_path", sa.String(2048), nullable=False),
        sa.Column("author_login", sa.String(255), nullable=False),
        sa.Column("lines_added", sa.Integer(), server_default="0", nullable=False),
        sa.Column("lines_modified", sa.Integer(), server_default="0", nullable=False),
        sa.Column("commit_count", sa.Integer(), server_default="0", nullable=False),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_file_authorship_workspace_path", "file_authorship", ["workspace_id", "file_path"]
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("type", sa.Enum(*ALERT_TYPES, name="alert_type"), nullable=False),
        sa.Column("severity", sa.Enum(*ALERT_SEVERITIES, name="alert_severity"), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), server_default="", nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dedup_key", sa.String(128), nullable=False),
        sa.Column("dedup_bucket", sa.BigInteger(), nullable=False),
        sa.Column("escalated_alert_id", sa.UUID(), nullable=True),
        _workspace_fk(),
        sa.ForeignKeyConstraint(["escalated_alert_id"], ["alerts.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "dedup_key", "dedup_bucket", name="uq_alert_dedup"),
    )
    op.create_index("ix_alerts_workspace_created", "alerts", ["workspace_id", "created_at"])
    op.create_index("ix_alerts_escalated_alert_id", "alerts", ["escalated_alert_id"])

    op.create_table(
        "health_snapshots",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("workspace_id", sa.UUID(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("commit_score", sa.Integer(), nullable=False),
        sa.Column("pr_score", sa.Integer(), nullable=False),
        sa.Column("issue_score", sa.Integer(), nullable=False),
        sa.Column("bus_factor_score", sa.Integer(), nullable=False),
        sa.Column("alert_penalty", sa.Integer(), nullable=False),
        sa.Column("taken_at", sa.DateTime(timezone=True), nullable=False),
        _workspace_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_health_snapshots_workspace_taken", "health_snapshots", ["workspace_id", "taken_at"]
    )


def downgrade() -> None:
    op.drop_table("health_snapshots")
    op.drop_table("alerts")
    op.drop_table("file_authorship")
    op.drop_table("chat_messages")
    op.drop_table("commit_files")
    op.drop_table("commits")
    op.drop_table("issues")
    op.drop_table("pull_requests")
    op.drop_table("branches")
    op.drop_table("workspaces")

    for enum_name in ("alert_type", "alert_severity", "issue_state", "pull_request_state"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
