"""Files touched by many authors within a short window."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from devpulse_core.health.models import AlertSeverity, AlertType, CandidateAlert, CommitFileSet
from devpulse_core.pathing import display_name


def build_author_index(
    commits: Iterable[CommitFileSet],
    since: datetime | None = None,
) -> dict[str, set[str]]:
    """Map each file to the distinct authors who changed it at or after ``since``."""
    index: dict[str, set[str]] = {}
    for commit in commits:
        if since is not None and commit.timestamp < since:
            continue
        for path in commit.files:
            index.setdefault(path, set()).add(commit.author)
    return index


def dependency_overlap_alerts(
    index: dict[str, set[str]],
    min_authors: int = 3,
) -> list[CandidateAlert]:
    alerts: list[CandidateAlert] = []
    for path in sorted(index):
        authors = sorted(index[path])
        if len(authors) < min_authors:
            continue
        alerts.append(
            CandidateAlert(
                type=AlertType.DEPENDENCY_OVERLAP,
                severity=AlertSeverity.WARNING,
                title=f"Overlapping work on {display_name(path)}",
                description=(
                    f"{len(authors)} people changed {path} recently: {', '.join(authors)}. "
                    "Coordinate to avoid conflicting changes."
                ),
                metadata={"file": path, "authors": authors, "count": len(authors)},
            )
        )
    return alerts
