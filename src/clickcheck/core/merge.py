import logging
from collections.abc import Iterable

from clickcheck.core.collector import NodeResult
from clickcheck.domain import AggregateGroup, MergeInvariantViolation, RawRecord

logger = logging.getLogger(__name__)


class MergeEngine:
    """Groups records from all nodes by fingerprint in a single pass.

    Results must be supplied in fetch-completion order: the first record
    seen for a fingerprint provides the group's sample text.
    """

    def __init__(self) -> None:
        self.skipped = 0

    def merge(self, results: Iterable[NodeResult]) -> dict[str, AggregateGroup]:
        groups: dict[str, AggregateGroup] = {}

        for result in results:
            for record in result.records:
                try:
                    self._merge_record(groups, record, result.node)
                except MergeInvariantViolation as exc:
                    self.skipped += 1
                    logger.warning("Skipping record from %s: %s", result.node, exc)

        if self.skipped:
            logger.info("Merged %d groups, skipped %d records", len(groups), self.skipped)
        return groups

    def _merge_record(
        self,
        groups: dict[str, AggregateGroup],
        record: RawRecord,
        source_node: str,
    ) -> None:
        if not record.fingerprint:
            raise MergeInvariantViolation("record has no fingerprint")
        if record.node != source_node:
            raise MergeInvariantViolation(
                f"record claims node {record.node!r} but was fetched from {source_node!r}"
            )

        group = groups.get(record.fingerprint)
        if group is None:
            group = AggregateGroup.from_record(record)
            group.add(record)
            groups[record.fingerprint] = group
        else:
            group.add(record)

    @staticmethod
    def exclude_node(groups: dict[str, AggregateGroup], node: str) -> None:
        """Remove one node's contribution from every group, in place.

        Groups left without any contributing node are dropped.
        """
        for fingerprint in list(groups):
            group = groups[fingerprint]
            group.exclude_node(node)
            if not group.contributions:
                del groups[fingerprint]
