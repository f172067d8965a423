"""Filtering and ranking of scored groups.

Filters look only at merged totals and group metadata, never at the sort
metric, so the qualifying set is the same whichever metric ranks it.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta

from clickcheck.core.config import ReportConfig, TimeWindow
from clickcheck.domain import AggregateGroup, ImpactScore, RecordKind, ReportRow
from clickcheck.scoring import ScoringEngine


@dataclass(frozen=True, slots=True)
class ScoredGroup:
    group: AggregateGroup
    scores: ImpactScore

    @property
    def fingerprint(self) -> str:
        return self.group.fingerprint


def score_groups(groups: Mapping[str, AggregateGroup], engine: ScoringEngine) -> list[ScoredGroup]:
    """Freeze every group and attach its impact scores."""
    scored = []
    for group in groups.values():
        group.freeze()
        scored.append(ScoredGroup(group=group, scores=engine.score(group.totals)))
    return scored


def sort_value(scored: ScoredGroup, metric: str) -> int:
    if metric in scored.scores:
        return scored.scores[metric]
    return getattr(scored.group.totals, metric)


def matches(scored: ScoredGroup, config: ReportConfig, window: TimeWindow) -> bool:
    group = scored.group
    totals = group.totals

    if config.fingerprint is not None and group.fingerprint != config.fingerprint:
        return False
    if not window.is_open and not window.overlaps(totals.first_seen, totals.last_seen):
        return False

    if config.min_duration is not None:
        if totals.duration_ms < config.min_duration // timedelta(milliseconds=1):
            return False
    if config.min_rows is not None and totals.read_rows < config.min_rows:
        return False
    if config.min_bytes is not None and totals.read_bytes < config.min_bytes:
        return False
    if config.min_count is not None:
        counted = totals.error_count if group.kind is RecordKind.ERROR else totals.executions
        if counted < config.min_count:
            return False

    if config.users and not set(config.users) & set(group.users):
        return False
    if config.databases and not set(config.databases) & set(group.databases):
        return False
    if config.tables and not set(config.tables) & set(group.tables):
        return False
    if config.error_codes and group.fingerprint not in {str(code) for code in config.error_codes}:
        return False

    return True


def filter_groups(
    scored: Iterable[ScoredGroup],
    config: ReportConfig,
    window: TimeWindow,
) -> list[ScoredGroup]:
    return [s for s in scored if s.group.kind is config.kind and matches(s, config, window)]


def rank(scored: Iterable[ScoredGroup], sort_metric: str, limit: int) -> tuple[ReportRow, ...]:
    """Order by ``sort_metric`` descending, ties by fingerprint, and truncate."""
    ordered = sorted(scored, key=lambda s: (-sort_value(s, sort_metric), s.fingerprint))
    return tuple(to_report_row(s, rank) for rank, s in enumerate(ordered[:limit], start=1))


def to_report_row(scored: ScoredGroup, rank: int) -> ReportRow:
    group = scored.group
    return ReportRow(
        rank=rank,
        fingerprint=group.fingerprint,
        kind=group.kind,
        sample=group.sample,
        name=group.name,
        totals=group.totals,
        scores=scored.scores,
        nodes=group.nodes,
        users=group.users,
        databases=group.databases,
        tables=group.tables,
        per_node=group.breakdown(),
    )
