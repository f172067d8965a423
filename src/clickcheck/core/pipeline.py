import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from clickcheck.core.collector import CollectionResult, FanOutCollector
from clickcheck.core.config import FetchParams, ReportConfig
from clickcheck.core.merge import MergeEngine
from clickcheck.core.ranking import ScoredGroup, filter_groups, rank, score_groups
from clickcheck.domain import (
    ClusterTotal,
    ConfigValidationError,
    MergedTotals,
    Report,
)
from clickcheck.scoring import ScoringEngine

if TYPE_CHECKING:
    from clickcheck.input.base import NodeFetcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReportPipeline:
    """Fetch, merge, score, filter and rank telemetry from a set of nodes.

    Configuration is validated before any node is contacted.
    """

    def __init__(
        self,
        fetcher: "NodeFetcher",
        nodes: Sequence[str],
        scoring: ScoringEngine | None = None,
        timeout: float | None = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._nodes = tuple(dict.fromkeys(nodes))
        self._scoring = scoring or ScoringEngine()
        self._timeout = timeout
        self._clock = clock

    @property
    def nodes(self) -> tuple[str, ...]:
        return self._nodes

    @property
    def scoring(self) -> ScoringEngine:
        return self._scoring

    def validate(self, config: ReportConfig) -> None:
        if not self._nodes:
            raise ConfigValidationError("no nodes configured: supply at least one URL")
        config.validate(self._scoring.metric_names)

    async def run(self, config: ReportConfig) -> Report:
        """Produce the top ``config.limit`` groups by ``config.sort_metric``."""
        now, collected, qualifying = await self._aggregate(config)
        sort_metric = config.effective_sort_metric
        rows = rank(qualifying, sort_metric, config.limit)

        logger.info("Ranked %d of %d qualifying groups by %s", len(rows), len(qualifying), sort_metric)
        return Report(
            kind=config.kind,
            rows=rows,
            nodes=self._nodes,
            sort_metric=sort_metric,
            scoring_version=self._scoring.version,
            failures=collected.failures,
            generated_at=now,
        )

    async def inspect(self, config: ReportConfig) -> Report:
        """Drill down into the single group named by ``config.fingerprint``."""
        if config.fingerprint is None:
            raise ConfigValidationError("inspect requires a fingerprint")
        return await self.run(replace(config, limit=1))

    async def total(self, config: ReportConfig) -> ClusterTotal:
        """Sum every qualifying group into one cluster-wide total."""
        now, collected, qualifying = await self._aggregate(config)
        totals = MergedTotals.from_contributions(
            contribution
            for scored in qualifying
            for contribution in scored.group.contributions.values()
        )

        return ClusterTotal(
            kind=config.kind,
            group_count=len(qualifying),
            totals=totals,
            scores=self._scoring.score(totals),
            nodes=self._nodes,
            scoring_version=self._scoring.version,
            failures=collected.failures,
            generated_at=now,
        )

    async def _aggregate(
        self, config: ReportConfig
    ) -> tuple[datetime, CollectionResult, list[ScoredGroup]]:
        self.validate(config)

        now = self._clock()
        params = FetchParams.from_config(config, now)
        collector = FanOutCollector(self._fetcher, self._nodes, timeout=self._timeout)
        collected = await collector.collect(params)

        groups = MergeEngine().merge(collected.results)
        scored = score_groups(groups, self._scoring)
        qualifying = filter_groups(scored, config, params.window)
        return now, collected, qualifying
