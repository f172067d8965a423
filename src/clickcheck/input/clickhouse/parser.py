from datetime import UTC, datetime
from typing import Any, ClassVar

from clickcheck.domain import NodeQueryError, RawRecord, RecordKind
from clickcheck.input.clickhouse.queries import CLICKHOUSE_DATETIME_FORMAT


class RowParser:
    """Converts JSONEachRow rows of the per-node queries into RawRecords.

    64-bit integers arrive as JSON strings unless the server disables
    ``output_format_json_quote_64bit_integers``; both forms are accepted.
    """

    QUERY_COLUMNS: ClassVar[tuple[str, ...]] = ("normalized_query_hash", "last_seen")
    ERROR_COLUMNS: ClassVar[tuple[str, ...]] = ("code", "error_count", "last_seen")

    QUERY_FIELDS: ClassVar[tuple[str, ...]] = (
        "executions",
        "duration_ms",
        "cpu_time_us",
        "memory_bytes",
        "read_rows",
        "read_bytes",
        "written_rows",
        "written_bytes",
        "network_receive_bytes",
        "network_send_bytes",
        "error_count",
    )

    def parse_row(self, row: dict[str, Any], node: str, kind: RecordKind) -> RawRecord:
        if not isinstance(row, dict):
            raise NodeQueryError(node, f"expected a JSON object row, got {type(row).__name__}")
        if kind is RecordKind.ERROR:
            return self._parse_error(row, node)
        return self._parse_query(row, node)

    def _parse_query(self, row: dict[str, Any], node: str) -> RawRecord:
        self._require(row, node, self.QUERY_COLUMNS)

        numbers = {name: self._int(row, name, node) for name in self.QUERY_FIELDS if name in row}
        last_seen = self._datetime(row["last_seen"], node)
        first_seen = self._datetime(row["first_seen"], node) if "first_seen" in row else None

        return RawRecord(
            fingerprint=f"{self._int(row, 'normalized_query_hash', node):#x}",
            node=node,
            timestamp=last_seen,
            first_seen=first_seen,
            kind=RecordKind.QUERY,
            sample=str(row.get("query") or ""),
            users=self._strings(row, "users", node),
            databases=self._strings(row, "databases", node),
            tables=self._strings(row, "tables", node),
            **numbers,
        )

    def _parse_error(self, row: dict[str, Any], node: str) -> RawRecord:
        self._require(row, node, self.ERROR_COLUMNS)

        return RawRecord(
            fingerprint=str(self._int(row, "code", node)),
            node=node,
            timestamp=self._datetime(row["last_seen"], node),
            kind=RecordKind.ERROR,
            sample=str(row.get("error_message") or ""),
            name=str(row["name"]) if row.get("name") else None,
            executions=0,
            error_count=self._int(row, "error_count", node),
        )

    def _require(self, row: dict[str, Any], node: str, columns: tuple[str, ...]) -> None:
        missing = [column for column in columns if column not in row]
        if missing:
            raise NodeQueryError(node, f"unsupported schema, missing columns: {', '.join(missing)}")

    def _int(self, row: dict[str, Any], key: str, node: str) -> int:
        value = row[key]
        if isinstance(value, bool):
            raise NodeQueryError(node, f"column {key!r} is not an integer: {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise NodeQueryError(node, f"column {key!r} is not an integer: {value!r}")

    def _datetime(self, value: Any, node: str) -> datetime:
        if isinstance(value, str):
            try:
                return datetime.strptime(value, CLICKHOUSE_DATETIME_FORMAT).replace(tzinfo=UTC)
            except ValueError:
                pass
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                pass
            else:
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

        if isinstance(value, int | float) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value, tz=UTC)
            except (OverflowError, OSError, ValueError):
                raise NodeQueryError(node, f"unparsable timestamp: {value!r}") from None

        raise NodeQueryError(node, f"unparsable timestamp: {value!r}")

    def _strings(self, row: dict[str, Any], key: str, node: str) -> tuple[str, ...]:
        value = row.get(key)
        if value is None:
            return ()
        if not isinstance(value, list):
            raise NodeQueryError(node, f"column {key!r} is not an array: {value!r}")
        return tuple(sorted({str(item) for item in value}))
