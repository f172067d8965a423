"""SQL templates for the per-node pre-aggregation queries.

Filter values are never interpolated into SQL: each one becomes a
``{name:Type}`` placeholder bound through a ``param_<name>`` HTTP parameter.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from clickcheck.core.config import FetchParams
from clickcheck.domain import RecordKind

QUERY_LOG_SQL = """
    SELECT
        normalized_query_hash,
        any(query) AS query,
        count() AS executions,
        min(event_time) AS first_seen,
        max(event_time) AS last_seen,
        sum(query_duration_ms) AS duration_ms,
        sum(ProfileEvents['UserTimeMicroseconds'] + ProfileEvents['SystemTimeMicroseconds']) AS cpu_time_us,
        sum(memory_usage) AS memory_bytes,
        sum(read_rows) AS read_rows,
        sum(read_bytes) AS read_bytes,
        sum(written_rows) AS written_rows,
        sum(written_bytes) AS written_bytes,
        sum(ProfileEvents['NetworkReceiveBytes']) AS network_receive_bytes,
        sum(ProfileEvents['NetworkSendBytes']) AS network_send_bytes,
        countIf(exception_code != 0) AS error_count,
        groupUniqArray(user) AS users,
        arrayDistinct(arrayFlatten(groupArray(databases))) AS databases,
        arrayDistinct(arrayFlatten(groupArray(tables))) AS tables
    FROM system.query_log
    WHERE type != 'QueryStart' AND query_kind = 'Select' {where_clause}
    GROUP BY normalized_query_hash
"""

ERRORS_SQL = """
    SELECT
        code,
        any(name) AS name,
        sum(value) AS error_count,
        max(last_error_time) AS last_seen,
        any(last_error_message) AS error_message
    FROM system.errors
    WHERE 1 = 1 {where_clause}
    GROUP BY code
    HAVING 1 = 1 {having_clause}
"""

CLICKHOUSE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True, slots=True)
class RenderedQuery:
    sql: str
    params: dict[str, str] = field(default_factory=dict)


class _ClauseBuilder:
    def __init__(self) -> None:
        self.clauses: list[str] = []
        self.params: dict[str, str] = {}

    def add(self, clause: str, **params: str) -> None:
        self.clauses.append(clause)
        for name, value in params.items():
            self.params[f"param_{name}"] = value

    def render(self) -> str:
        if not self.clauses:
            return ""
        return "AND " + " AND ".join(self.clauses)


def format_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(CLICKHOUSE_DATETIME_FORMAT)


def array_literal(values: Sequence[str | int]) -> str:
    """Render values in ClickHouse text format, e.g. ``['a','b']``."""
    items = []
    for value in values:
        if isinstance(value, int):
            items.append(str(value))
        else:
            escaped = value.replace("\\", "\\\\").replace("'", "\\'")
            items.append(f"'{escaped}'")
    return "[" + ",".join(items) + "]"


def render_query_log(params: FetchParams) -> RenderedQuery:
    where = _ClauseBuilder()

    if params.window.start is not None:
        where.add(
            "event_time >= toDateTime({start:String}, 'UTC')",
            start=format_datetime(params.window.start),
        )
    if params.window.end is not None:
        where.add(
            "event_time < toDateTime({end:String}, 'UTC')",
            end=format_datetime(params.window.end),
        )
    if params.users:
        where.add("has({users:Array(String)}, user)", users=array_literal(params.users))
    if params.databases:
        where.add(
            "hasAny(databases, {databases:Array(String)})",
            databases=array_literal(params.databases),
        )
    if params.tables:
        where.add("hasAny(tables, {tables:Array(String)})", tables=array_literal(params.tables))
    if params.fingerprint is not None:
        where.add(
            "normalized_query_hash = {fingerprint:UInt64}",
            fingerprint=str(int(params.fingerprint, 16)),
        )

    sql = QUERY_LOG_SQL.format(where_clause=where.render())
    return RenderedQuery(sql=sql, params=where.params)


def render_errors(params: FetchParams) -> RenderedQuery:
    where = _ClauseBuilder()
    having = _ClauseBuilder()

    if params.error_codes:
        where.add("has({codes:Array(Int32)}, code)", codes=array_literal(params.error_codes))
    if params.fingerprint is not None:
        where.add("code = {fingerprint:Int32}", fingerprint=str(int(params.fingerprint)))

    if params.window.start is not None:
        having.add(
            "last_seen >= toDateTime({start:String}, 'UTC')",
            start=format_datetime(params.window.start),
        )
    if params.window.end is not None:
        having.add(
            "last_seen < toDateTime({end:String}, 'UTC')",
            end=format_datetime(params.window.end),
        )

    sql = ERRORS_SQL.format(where_clause=where.render(), having_clause=having.render())
    return RenderedQuery(sql=sql, params={**where.params, **having.params})


def render(params: FetchParams) -> RenderedQuery:
    if params.kind is RecordKind.ERROR:
        return render_errors(params)
    return render_query_log(params)
