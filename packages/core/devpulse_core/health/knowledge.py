"""Knowledge concentration (bus factor) of files."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from devpulse_core.health.models import FileContribution, FileKnowledge, KnowledgeConcentration

logger = logging.getLogger(__name__)

BUS_FACTOR_SHARE = 0.5


def _aggregate(contributions: Iterable[FileContribution]) -> dict[str, int]:
    totals: dict[str, int] = {}
    for contribution in contributions:
        totals[contribution.author] = totals.get(contribution.author, 0) + contribution.lines
    return totals


def _bus_factor(
    ranked: list[tuple[str, int]], total: int, threshold: float = BUS_FACTOR_SHARE
) -> int:
    running = 0
    for index, (_, lines) in enumerate(ranked, start=1):
        running += lines
        if running / total >= threshold:
            return index
    return len(ranked)


def calculate_knowledge_concentration(
    contributions: Iterable[FileContribution],
) -> KnowledgeConcentration:
    """Compute bus factor and concentration for one file's contributions.

    Records of the same author are summed first. Ties in the ranking keep
    first-seen order.
    """
    totals = _aggregate(contributions)
    total = sum(totals.values())
    if total <= 0:
        return KnowledgeConcentration(
            bus_factor=0,
            dominant_author=None,
            concentration_percent=0.0,
            author_count=len(totals),
        )

    # sorted() is stable, so equal contributions stay in first-seen order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    dominant_author, top = ranked[0]
    return KnowledgeConcentration(
        bus_factor=_bus_factor(ranked, total),
        dominant_author=dominant_author,
        concentration_percent=100.0 * top / total,
        author_count=len(totals),
    )


def is_critical_file(
    concentration: KnowledgeConcentration,
    threshold_percent: float = 80.0,
) -> bool:
    """A file is critical when one single author holds the knowledge."""
    return (
        concentration.concentration_percent > threshold_percent
        and concentration.author_count == 1
    )


def build_knowledge_report(
    contributions_by_file: Mapping[str, Sequence[FileContribution | Mapping[str, Any]]],
    *,
    threshold_percent: float = 80.0,
) -> list[FileKnowledge]:
    """Compute concentration for every file, most concentrated first.

    Raw mappings are parsed with ``FileContribution.from_dict``; a file with a
    malformed record is skipped.
    """
    report: list[FileKnowledge] = []
    for file_path, records in contributions_by_file.items():
        try:
            parsed = [
                record
                if isinstance(record, FileContribution)
                else FileContribution.from_dict(dict(record))
                for record in records
            ]
        except ValueError as exc:
            logger.warning("Skipping knowledge concentration for %s: %s", file_path, exc)
            continue
        concentration = calculate_knowledge_concentration(parsed)
        report.append(
            FileKnowledge(
                file_path=file_path,
                concentration=concentration,
                is_critical=is_critical_file(concentration, threshold_percent),
            )
        )
    report.sort(key=lambda item: (-item.concentration.concentration_percent, item.file_path))
    return report
