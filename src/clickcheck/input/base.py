from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from clickcheck.core.config import FetchParams
from clickcheck.domain import RawRecord


@runtime_checkable
class NodeFetcher(Protocol):
    """Protocol for per-node record sources.

    ``fetch`` returns a lazy, single-use stream. Implementations raise
    ``NodeUnreachable`` or ``NodeQueryError`` and never retry.
    """

    def fetch(self, node: str, params: FetchParams) -> AsyncIterator[RawRecord]:
        ...
