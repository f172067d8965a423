import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from clickcheck.core.config import FetchParams
from clickcheck.domain import (
    ClusterUnreachable,
    FailureReason,
    NodeFailure,
    NodeQueryError,
    NodeUnreachable,
    RawRecord,
)

if TYPE_CHECKING:
    from clickcheck.input.base import NodeFetcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NodeResult:
    node: str
    records: tuple[RawRecord, ...]


@dataclass(frozen=True, slots=True)
class CollectionResult:
    """Per-node outcome of one fan-out, successes in completion order."""

    results: tuple[NodeResult, ...]
    failures: tuple[NodeFailure, ...]

    @property
    def succeeded_nodes(self) -> tuple[str, ...]:
        return tuple(r.node for r in self.results)


class FanOutCollector:
    """Runs one fetch per node concurrently under a single deadline."""

    def __init__(
        self,
        fetcher: "NodeFetcher",
        nodes: Sequence[str],
        timeout: float | None = 30.0,
    ) -> None:
        self._fetcher = fetcher
        self._nodes = tuple(dict.fromkeys(nodes))
        self._timeout = timeout

    @property
    def nodes(self) -> tuple[str, ...]:
        return self._nodes

    async def collect(self, params: FetchParams) -> CollectionResult:
        """Fetch from every node.

        Raises:
            ClusterUnreachable: If no node returned a result.
        """
        tasks = {
            asyncio.create_task(self._drain(node, params), name=f"fetch:{node}"): node
            for node in self._nodes
        }
        completed: list[asyncio.Task[NodeResult]] = []
        for task in tasks:
            task.add_done_callback(completed.append)

        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=self._timeout)
        else:
            done, pending = set(), set()

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[NodeResult] = []
        failures: list[NodeFailure] = []

        for task in pending:
            failures.append(
                NodeFailure(
                    node=tasks[task],
                    reason=FailureReason.TIMEOUT,
                    message=f"no response within {self._timeout}s",
                )
            )

        for task in completed:
            if task not in done:
                continue
            node = tasks[task]
            exc = task.exception()
            if exc is None:
                results.append(task.result())
            elif isinstance(exc, NodeUnreachable):
                failures.append(NodeFailure(node, FailureReason.UNREACHABLE, exc.message))
            elif isinstance(exc, NodeQueryError):
                failures.append(NodeFailure(node, FailureReason.QUERY_ERROR, exc.message))
            else:
                raise exc

        failures.sort(key=lambda f: self._nodes.index(f.node))
        for failure in failures:
            logger.warning("Node %s failed (%s): %s", failure.node, failure.reason, failure.message)

        if not results:
            raise ClusterUnreachable(failures)

        logger.info(
            "Fetched %d records from %d/%d nodes",
            sum(len(r.records) for r in results),
            len(results),
            len(self._nodes),
        )
        return CollectionResult(results=tuple(results), failures=tuple(failures))

    async def _drain(self, node: str, params: FetchParams) -> NodeResult:
        records = [record async for record in self._fetcher.fetch(node, params)]
        return NodeResult(node=node, records=tuple(records))
