"""DevPulse core: settings, database, ORM models and the heuristics engine."""

from devpulse_core.database import (
    Base,
    close_engine,
    create_schema,
    get_engine,
    get_session,
    get_session_factory,
)
from devpulse_core.health import (
    AlertSeverity,
    AlertType,
    EventStore,
    HeuristicRunReport,
    HeuristicsError,
    HeuristicThresholds,
    MemoryEventStore,
    run_heuristic_pass,
)
from devpulse_core.models import (
    Alert,
    Branch,
    ChatMessage,
    Commit,
    CommitFile,
    FileAuthorship,
    HealthSnapshot,
    Issue,
    IssueState,
    PullRequest,
    PullRequestState,
    Workspace,
)
from devpulse_core.settings import Settings, get_settings

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertType",
    "Base",
    "Branch",
    "ChatMessage",
    "Commit",
    "CommitFile",
    "EventStore",
    "FileAuthorship",
    "HealthSnapshot",
    "HeuristicRunReport",
    "HeuristicThresholds",
    "HeuristicsError",
    "Issue",
    "IssueState",
    "MemoryEventStore",
    "PullRequest",
    "PullRequestState",
    "Settings",
    "Workspace",
    "close_engine",
    "create_schema",
    "get_engine",
    "get_session",
    "get_session_factory",
    "get_settings",
    "run_heuristic_pass",
]
