"""Alert persistence with deduplication, escalation and resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from uuid import UUID

from devpulse_core.health.models import (
    AlertRecord,
    AlertSeverity,
    AlertType,
    CandidateAlert,
)
from devpulse_core.health.store import EventStore
from devpulse_core.telemetry import record_alerts_created

logger = logging.getLogger(__name__)

ESCALATION_PREFIX = "ESCALATED: "


async def persist_candidates(
    store: EventStore,
    workspace_id: UUID,
    candidates: Iterable[CandidateAlert],
    *,
    now: datetime,
    dedup_window: timedelta,
) -> list[AlertRecord]:
    """Store each candidate unless an identical alert is already inside the window.

    Returns only the alerts created by this call. Each insert runs in its own
    savepoint, so one rejected row does not cost the rest.
    """
    created: list[AlertRecord] = []
    for candidate in candidates:
        try:
            async with store.savepoint():
                was_created, record = await store.insert_alert_if_absent(
                    workspace_id, candidate, now=now, dedup_window=dedup_window
                )
        except Exception:
            logger.exception(
                "Failed to persist alert %r for workspace %s", candidate.title, workspace_id
            )
            continue
        if was_created:
            created.append(record)
            record_alerts_created(1, record.type.value)
        else:
            logger.debug("Duplicate alert skipped: %s (existing %s)", candidate.title, record.id)
    return created


def build_escalation(original: AlertRecord) -> CandidateAlert:
    return CandidateAlert(
        type=AlertType.ESCALATION,
        severity=AlertSeverity.CRITICAL,
        title=f"{ESCALATION_PREFIX}{original.title}",
        description=(
            f"Critical alert unresolved since {original.created_at.isoformat()}: "
            f"{original.description}"
        ),
        metadata={
            "original_alert_id": str(original.id),
            "original_type": original.type.value,
        },
        escalates_alert_id=original.id,
    )


async def escalate_unresolved_critical(
    store: EventStore,
    workspace_id: UUID,
    *,
    now: datetime,
    escalation_delay: timedelta,
    dedup_window: timedelta,
) -> list[AlertRecord]:
    """Escalate critical alerts left unresolved for longer than ``escalation_delay``.

    Each original alert is escalated at most once, keyed by its id.
    """
    cutoff = now - escalation_delay
    stale = await store.list_unresolved_critical_alerts_older_than(workspace_id, cutoff)

    escalations: list[CandidateAlert] = []
    for original in stale:
        if original.type == AlertType.ESCALATION:
            continue
        if await store.exists_escalation_for(original.id):
            continue
        escalations.append(build_escalation(original))

    created = await persist_candidates(
        store, workspace_id, escalations, now=now, dedup_window=dedup_window
    )
    if created:
        logger.info("Escalated %d critical alert(s) in workspace %s", len(created), workspace_id)
    return created


async def resolve_alert(
    store: EventStore,
    workspace_id: UUID,
    alert_id: UUID,
    *,
    now: datetime,
) -> bool:
    """Mark an alert resolved. Resolved is terminal."""
    resolved = await store.mark_alert_resolved(workspace_id, alert_id, now)
    if resolved:
        logger.info("Resolved alert %s in workspace %s", alert_id, workspace_id)
    else:
        logger.debug("Alert %s not resolvable (unknown or already resolved)", alert_id)
    return resolved
