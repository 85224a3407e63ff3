"""Co-modification graph and circular-dependency candidates.

Two files are co-modified when they appear in the same commit. The graph is
undirected; a cycle of three or more files that keep changing together is
reported as a potential circular dependency. This is a coupling heuristic,
not an import-graph analysis.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import combinations

from devpulse_core.health.models import AlertSeverity, AlertType, CandidateAlert, CommitFileSet

MIN_CYCLE_LENGTH = 3
DESCRIPTION_FILE_LIMIT = 4
TITLE_FILE_LIMIT = 3


def build_comodification_graph(commits: Iterable[CommitFileSet]) -> dict[str, set[str]]:
    """Adjacency map with an edge between every pair of files in one commit."""
    graph: dict[str, set[str]] = {}
    for commit in commits:
        for path in commit.files:
            graph.setdefault(path, set())
        for left, right in combinations(commit.files, 2):
            if left == right:
                continue
            graph[left].add(right)
            graph[right].add(left)
    return graph


def find_cycles(graph: dict[str, set[str]], limit: int | None = None) -> list[list[str]]:
    """Return cycles of at least three files, in discovery order.

    Depth-first search over nodes and neighbours in sorted order. Meeting a
    neighbour that is on the current path closes a cycle made of the path
    from that neighbour to the current node. The walk back over the edge just
    taken only yields two nodes and is dropped by the length check. Each node
    set is reported once.
    """
    cycles: list[list[str]] = []
    seen: set[frozenset[str]] = set()
    visited: set[str] = set()

    for start in sorted(graph):
        if start in visited:
            continue
        visited.add(start)
        path: list[str] = [start]
        position: dict[str, int] = {start: 0}
        frames: list[Iterator[str]] = [iter(sorted(graph[start]))]

        while frames:
            neighbour = next(frames[-1], None)
            if neighbour is None:
                frames.pop()
                del position[path.pop()]
                continue

            if neighbour in position:
                cycle = path[position[neighbour]:]
                key = frozenset(cycle)
                if len(cycle) >= MIN_CYCLE_LENGTH and key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
                    if limit is not None and len(cycles) >= limit:
                        return cycles
                continue

            if neighbour in visited:
                continue

            visited.add(neighbour)
            position[neighbour] = len(path)
            path.append(neighbour)
            frames.append(iter(sorted(graph.get(neighbour, ()))))

    return cycles


def _cycle_title(cycle: list[str]) -> str:
    shown = " -> ".join(cycle[:TITLE_FILE_LIMIT])
    if len(cycle) > TITLE_FILE_LIMIT:
        shown += " -> ..."
    return f"Potential circular dependency: {shown}"


def _cycle_description(cycle: list[str]) -> str:
    listed = ", ".join(cycle[:DESCRIPTION_FILE_LIMIT])
    if len(cycle) > DESCRIPTION_FILE_LIMIT:
        listed += "..."
    return (
        f"{len(cycle)} files are repeatedly changed together in a loop: {listed}. "
        "This may indicate a circular dependency."
    )


def circular_dependency_alerts(
    cycles: Iterable[list[str]],
    max_alerts: int = 3,
) -> list[CandidateAlert]:
    """Turn the first ``max_alerts`` cycles into warnings."""
    alerts: list[CandidateAlert] = []
    for cycle in cycles:
        if len(alerts) >= max_alerts:
            break
        alerts.append(
            CandidateAlert(
                type=AlertType.CIRCULAR_DEPENDENCY,
                severity=AlertSeverity.WARNING,
                title=_cycle_title(cycle),
                description=_cycle_description(cycle),
                metadata={"files": list(cycle), "length": len(cycle)},
            )
        )
    return alerts
