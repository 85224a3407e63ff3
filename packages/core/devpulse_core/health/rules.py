"""Heuristic rules that turn workspace events into candidate alerts.

Every rule has the same signature and reads the event store independently of
the others, so the engine can isolate failures per rule.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from uuid import UUID

from devpulse_core.health.comodification import (
    build_comodification_graph,
    circular_dependency_alerts,
    find_cycles,
)
from devpulse_core.health.models import AlertSeverity, AlertType, CandidateAlert
from devpulse_core.health.overlap import build_author_index, dependency_overlap_alerts
from devpulse_core.health.store import EventStore
from devpulse_core.health.thresholds import HeuristicThresholds

HeuristicRule = Callable[..., Awaitable[list[CandidateAlert]]]


async def inactive_branch_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Unmerged branches without a commit for ``inactive_branch_days``."""
    cutoff = now - thresholds.inactive_branch_age
    alerts: list[CandidateAlert] = []
    for branch in await store.list_unmerged_branches(workspace_id):
        if branch.last_commit_at is None or branch.last_commit_at >= cutoff:
            continue
        author = branch.author or "unknown"
        alerts.append(
            CandidateAlert(
                type=AlertType.INACTIVE_BRANCH,
                severity=AlertSeverity.WARNING,
                title=f"Inactive branch: {branch.name}",
                description=(
                    f'Branch "{branch.name}" by {author} has had no commits for '
                    f"{thresholds.inactive_branch_days}+ days."
                ),
                metadata={"branch": branch.name, "author": author},
            )
        )
    return alerts


async def stale_pr_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Open pull requests still waiting for a first review."""
    cutoff = now - thresholds.stale_pr_age
    alerts: list[CandidateAlert] = []
    for pr in await store.list_open_pull_requests(workspace_id):
        if pr.first_review_at is not None or pr.opened_at >= cutoff:
            continue
        alerts.append(
            CandidateAlert(
                type=AlertType.STALE_PR,
                severity=AlertSeverity.WARNING,
                title=f"PR #{pr.number} pending review",
                description=(
                    f'"{pr.title}" by {pr.author} has been open for '
                    f"{thresholds.stale_pr_hours}+ hours without review."
                ),
                metadata={"pr_number": pr.number, "title": pr.title, "author": pr.author},
            )
        )
    return alerts


async def assigned_issue_no_commits_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Issues assigned long enough ago whose assignee has not committed since."""
    since = now - thresholds.unworked_assignment_age
    commit_counts: dict[str, int] = {}
    alerts: list[CandidateAlert] = []
    for issue in await store.list_open_assigned_issues(workspace_id):
        if issue.assignment_started_at > since:
            continue
        if issue.assignee not in commit_counts:
            commit_counts[issue.assignee] = await store.count_recent_commits_by_author(
                workspace_id, issue.assignee, since
            )
        if commit_counts[issue.assignee] > 0:
            continue
        alerts.append(
            CandidateAlert(
                type=AlertType.ASSIGNED_ISSUE_NO_COMMITS,
                severity=AlertSeverity.INFO,
                title=f"Issue #{issue.number} assigned but no recent commits",
                description=f'"{issue.title}" assigned to {issue.assignee} with no recent commits.',
                metadata={"issue_number": issue.number, "assignee": issue.assignee},
            )
        )
    return alerts


async def multiple_blockers_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Several people reporting blockers within the blocker window."""
    messages = await store.list_recent_blocker_messages(
        workspace_id, now - thresholds.blocker_window
    )
    authors = sorted({message.author for message in messages})
    if len(authors) < thresholds.blocker_min_authors:
        return []
    return [
        CandidateAlert(
            type=AlertType.MULTIPLE_BLOCKERS,
            severity=AlertSeverity.CRITICAL,
            title="Multiple team members reporting blockers",
            description=(
                f"{len(authors)} team members reported blockers in the last "
                f"{thresholds.blocker_window_hours} hours. Immediate attention needed."
            ),
            metadata={"authors": authors, "count": len(authors), "message_count": len(messages)},
        )
    ]


async def high_wip_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Authors with more open pull requests than the WIP threshold."""
    open_counts: dict[str, int] = {}
    for pr in await store.list_open_pull_requests(workspace_id):
        open_counts[pr.author] = open_counts.get(pr.author, 0) + 1

    alerts: list[CandidateAlert] = []
    for author in sorted(open_counts):
        count = open_counts[author]
        if count <= thresholds.wip_threshold:
            continue
        alerts.append(
            CandidateAlert(
                type=AlertType.HIGH_WIP,
                severity=AlertSeverity.WARNING,
                title=f"High WIP for {author}",
                description=(
                    f"{author} has {count} open pull requests "
                    f"(threshold: {thresholds.wip_threshold})."
                ),
                metadata={"author": author, "wip_count": count},
            )
        )
    return alerts


async def circular_dependency_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Files that keep changing together in a loop across recent commits."""
    commits = await store.list_recent_commit_file_sets(workspace_id, limit=thresholds.commit_window)
    graph = build_comodification_graph(commits)
    cycles = find_cycles(graph, limit=thresholds.max_cycle_alerts)
    return circular_dependency_alerts(cycles, max_alerts=thresholds.max_cycle_alerts)


async def dependency_overlap_rule(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    thresholds: HeuristicThresholds,
) -> list[CandidateAlert]:
    """Files changed by many authors within the overlap window."""
    since = now - thresholds.overlap_window
    commits = await store.list_recent_commit_file_sets(workspace_id, since=since)
    index = build_author_index(commits, since=since)
    return dependency_overlap_alerts(index, min_authors=thresholds.overlap_min_authors)


HEURISTIC_RULES: dict[str, HeuristicRule] = {
    AlertType.INACTIVE_BRANCH.value: inactive_branch_rule,
    AlertType.STALE_PR.value: stale_pr_rule,
    AlertType.ASSIGNED_ISSUE_NO_COMMITS.value: assigned_issue_no_commits_rule,
    AlertType.MULTIPLE_BLOCKERS.value: multiple_blockers_rule,
    AlertType.HIGH_WIP.value: high_wip_rule,
    AlertType.CIRCULAR_DEPENDENCY.value: circular_dependency_rule,
    AlertType.DEPENDENCY_OVERLAP.value: dependency_overlap_rule,
}
