"""Tests for the co-modification graph and cycle detection."""

from datetime import UTC, datetime, timedelta

from devpulse_core.health.comodification import (
    build_comodification_graph,
    circular_dependency_alerts,
    find_cycles,
)
from devpulse_core.health.models import (
    ALERT_TITLE_MAX_LENGTH,
    AlertSeverity,
    AlertType,
    CommitFileSet,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _commits(*file_lists: list[str]) -> list[CommitFileSet]:
    return [
        CommitFileSet.create(f"c{index}", files, "alice", NOW - timedelta(minutes=index))
        for index, files in enumerate(file_lists)
    ]


def test_triangle_is_a_cycle() -> None:
    graph = build_comodification_graph(_commits(["A", "B"], ["B", "C"], ["C", "A"]))

    assert graph == {"A": {"B", "C"}, "B": {"A", "C"}, "C": {"A", "B"}}
    cycles = find_cycles(graph)
    assert len(cycles) == 1
    assert set(cycles[0]) == {"A", "B", "C"}
    assert cycles[0] == ["A", "B", "C"]


def test_single_pair_is_not_a_cycle() -> None:
    graph = build_comodification_graph(_commits(["A", "B"]))

    assert find_cycles(graph) == []


def test_three_files_in_one_commit_form_a_cycle() -> None:
    cycles = find_cycles(build_comodification_graph(_commits(["x.py", "y.py", "z.py"])))

    assert [set(cycle) for cycle in cycles] == [{"x.py", "y.py", "z.py"}]


def test_paths_are_canonicalized_and_deduplicated() -> None:
    commit = CommitFileSet.create("c1", ["./src/a.py", "src/a.py", "src\\b.py", ""], "bob", NOW)

    assert commit.files == ("src/a.py", "src/b.py")


def test_every_component_is_visited() -> None:
    graph = build_comodification_graph(
        _commits(["a", "b"], ["b", "c"], ["c", "a"], ["x", "y"], ["y", "z"], ["z", "x"], ["p", "q"])
    )

    cycles = find_cycles(graph)

    assert [set(cycle) for cycle in cycles] == [{"a", "b", "c"}, {"x", "y", "z"}]


def test_duplicate_node_sets_reported_once() -> None:
    # A square with both diagonals yields many back edges over the same nodes
    graph = build_comodification_graph(_commits(["a", "b", "c", "d"]))

    cycles = find_cycles(graph)

    assert len({frozenset(cycle) for cycle in cycles}) == len(cycles)
    assert all(len(cycle) >= 3 for cycle in cycles)


def test_discovery_order_is_deterministic() -> None:
    first = find_cycles(build_comodification_graph(_commits(["m", "n"], ["n", "o"], ["o", "m"])))
    second = find_cycles(build_comodification_graph(_commits(["o", "m"], ["n", "o"], ["m", "n"])))

    assert first == second


def test_limit_caps_cycles() -> None:
    graph = build_comodification_graph(
        _commits(["a", "b", "c"], ["d", "e", "f"], ["g", "h", "i"], ["j", "k", "l"])
    )

    assert len(find_cycles(graph)) == 4
    assert len(find_cycles(graph, limit=3)) == 3


def test_long_chain_does_not_hit_recursion_limit() -> None:
    files = [f"f{index:05d}" for index in range(5000)]
    commits = _commits(*[[files[i], files[i + 1]] for i in range(len(files) - 1)], [files[-1], files[0]])

    cycles = find_cycles(build_comodification_graph(commits))

    assert len(cycles) == 1
    assert len(cycles[0]) == 5000


def test_circular_dependency_alerts() -> None:
    cycles = [["a", "b", "c"], ["d", "e", "f", "g", "h"], ["i", "j", "k"], ["l", "m", "n"]]

    alerts = circular_dependency_alerts(cycles)

    assert len(alerts) == 3
    assert all(alert.type == AlertType.CIRCULAR_DEPENDENCY for alert in alerts)
    assert all(alert.severity == AlertSeverity.WARNING for alert in alerts)
    assert alerts[0].title == "Potential circular dependency: a -> b -> c"
    assert alerts[1].title == "Potential circular dependency: d -> e -> f -> ..."
    assert "d, e, f, g..." in alerts[1].description
    assert alerts[1].metadata["files"] == ["d", "e", "f", "g", "h"]


def test_cycle_title_with_long_paths_is_clipped() -> None:
    cycle = [f"src/{name * 200}/module.py" for name in "abc"]

    [alert] = circular_dependency_alerts([cycle])

    assert len(alert.title) == ALERT_TITLE_MAX_LENGTH
    assert alert.title.endswith("...")
    assert alert.metadata["files"] == cycle
