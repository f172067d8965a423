import asyncio
from collections.abc import AsyncIterator, Mapping, Sequence

from clickcheck.core.config import FetchParams
from clickcheck.domain import NodeUnreachable, RawRecord


class ManualFetcher:
    """Fetcher over records supplied up front, keyed by node.

    A node mapped to an exception raises it when fetched; unknown nodes are
    unreachable. ``delays`` holds per-node latencies in seconds.
    """

    def __init__(
        self,
        records: Mapping[str, Sequence[RawRecord] | Exception],
        delays: Mapping[str, float] | None = None,
    ) -> None:
        self._records = dict(records)
        self._delays = dict(delays or {})

    async def fetch(self, node: str, params: FetchParams) -> AsyncIterator[RawRecord]:
        delay = self._delays.get(node)
        if delay:
            await asyncio.sleep(delay)

        if node not in self._records:
            raise NodeUnreachable(node, "no such node")

        entry = self._records[node]
        if isinstance(entry, Exception):
            raise entry

        for record in entry:
            if record.kind is not params.kind:
                continue
            if params.fingerprint is not None and record.fingerprint != params.fingerprint:
                continue
            yield record
