import json
from collections.abc import AsyncIterator, Mapping, Sequence
from pathlib import Path

from clickcheck.core.config import FetchParams
from clickcheck.domain import NodeQueryError, NodeUnreachable, RawRecord
from clickcheck.input.clickhouse.parser import RowParser


class JsonDumpFetcher:
    """NodeFetcher over JSONEachRow exports, one file per node.

    The files hold the output of the per-node queries, e.g. saved with
    ``clickhouse-client --query "..." --format JSONEachRow > node1.jsonl``.
    Filters are not pushed down; the ranking stage applies them.
    """

    def __init__(
        self,
        paths: Mapping[str, str | Path],
        parser: RowParser | None = None,
    ) -> None:
        self._paths = {node: Path(path) for node, path in paths.items()}
        self._lines: dict[str, Sequence[str]] | None = None
        self._parser = parser or RowParser()

    @classmethod
    def from_lines(
        cls,
        lines: Mapping[str, Sequence[str]],
        parser: RowParser | None = None,
    ) -> "JsonDumpFetcher":
        """Create fetcher from pre-loaded lines (for testing)."""
        instance = cls.__new__(cls)
        instance._paths = {node: Path("/dev/null") for node in lines}
        instance._lines = dict(lines)
        instance._parser = parser or RowParser()
        return instance

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(self._paths)

    async def fetch(self, node: str, params: FetchParams) -> AsyncIterator[RawRecord]:
        for number, line in enumerate(self._read_lines(node), start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                raise NodeQueryError(node, f"line {number}: malformed JSON") from exc

            record = self._parser.parse_row(row, node, params.kind)
            if params.fingerprint is not None and record.fingerprint != params.fingerprint:
                continue
            yield record

    def _read_lines(self, node: str) -> Sequence[str]:
        if self._lines is not None:
            if node not in self._lines:
                raise NodeUnreachable(node, "no dump loaded for node")
            return self._lines[node]

        path = self._paths.get(node)
        if path is None:
            raise NodeUnreachable(node, "no dump file configured for node")
        try:
            with open(path, encoding="utf-8") as dump:
                return dump.readlines()
        except OSError as exc:
            raise NodeUnreachable(node, f"cannot read {path}: {exc.strerror or exc}") from exc
