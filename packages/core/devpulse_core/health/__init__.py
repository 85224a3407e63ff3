"""Engineering-health heuristics: metrics, rules and the alert stream.

``SqlEventStore`` lives in ``devpulse_core.health.sql_store`` and is not
re-exported here, since it pulls in the ORM models.
"""

from devpulse_core.health.alerts import (
    escalate_unresolved_critical,
    persist_candidates,
    resolve_alert,
)
from devpulse_core.health.comodification import (
    build_comodification_graph,
    circular_dependency_alerts,
    find_cycles,
)
from devpulse_core.health.cycle_time import calculate_cycle_time, summarize_cycle_times
from devpulse_core.health.engine import HeuristicRunReport, run_heuristic_pass
from devpulse_core.health.knowledge import (
    build_knowledge_report,
    calculate_knowledge_concentration,
    is_critical_file,
)
from devpulse_core.health.models import (
    AlertRecord,
    AlertSeverity,
    AlertType,
    CandidateAlert,
    CommitFileSet,
    CycleTimeMetrics,
    FileContribution,
    HeuristicsError,
    KnowledgeConcentration,
    LifecycleEvent,
)
from devpulse_core.health.overlap import build_author_index, dependency_overlap_alerts
from devpulse_core.health.rules import HEURISTIC_RULES
from devpulse_core.health.score import HealthScore, HealthSnapshotRecord, compute_health_score
from devpulse_core.health.store import EventStore, MemoryEventStore
from devpulse_core.health.thresholds import HeuristicThresholds

__all__ = [
    "AlertRecord",
    "AlertSeverity",
    "AlertType",
    "CandidateAlert",
    "CommitFileSet",
    "CycleTimeMetrics",
    "EventStore",
    "FileContribution",
    "HEURISTIC_RULES",
    "HealthScore",
    "HealthSnapshotRecord",
    "HeuristicRunReport",
    "HeuristicThresholds",
    "HeuristicsError",
    "KnowledgeConcentration",
    "LifecycleEvent",
    "MemoryEventStore",
    "build_author_index",
    "build_comodification_graph",
    "build_knowledge_report",
    "calculate_cycle_time",
    "calculate_knowledge_concentration",
    "circular_dependency_alerts",
    "compute_health_score",
    "dependency_overlap_alerts",
    "escalate_unresolved_critical",
    "find_cycles",
    "is_critical_file",
    "persist_candidates",
    "resolve_alert",
    "run_heuristic_pass",
    "summarize_cycle_times",
]
