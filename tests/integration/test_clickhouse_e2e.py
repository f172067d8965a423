"""End-to-end runs against ClickHouse nodes served by httpx.MockTransport."""

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from clickcheck import ClickHouseNodeFetcher, RecordKind, ReportConfig, ReportPipeline
from clickcheck.core import ClickcheckSettings
from clickcheck.domain import FailureReason

NOW = datetime(2026, 1, 14, 12, 0, 0, tzinfo=UTC)

QUERY_ROWS = {
    "ch-1": [
        {
            "normalized_query_hash": "4660",
            "query": "SELECT * FROM events WHERE id = 1",
            "executions": "2",
            "first_seen": "2026-01-14 11:10:00",
            "last_seen": "2026-01-14 11:50:00",
            "duration_ms": "100",
            "cpu_time_us": "10000",
            "read_rows": "10",
            "read_bytes": "1000",
            "users": ["alice"],
            "databases": ["analytics"],
            "tables": ["analytics.events"],
        },
    ],
    "ch-2": [
        {
            "normalized_query_hash": "4660",
            "query": "SELECT * FROM events WHERE id = 2",
            "executions": "1",
            "first_seen": "2026-01-14 11:20:00",
            "last_seen": "2026-01-14 11:55:00",
            "duration_ms": "300",
            "cpu_time_us": "20000",
            "read_rows": "5",
            "read_bytes": "500",
            "users": ["bob"],
            "databases": ["analytics"],
            "tables": ["analytics.events"],
        },
        {
            "normalized_query_hash": "43981",
            "query": "SELECT 1",
            "executions": "1",
            "first_seen": "2026-01-14 11:30:00",
            "last_seen": "2026-01-14 11:30:00",
            "duration_ms": "1",
        },
    ],
}

ERROR_ROWS = {
    "ch-1": [
        {"code": 60, "name": "UNKNOWN_TABLE", "error_count": "3",
         "last_seen": "2026-01-14 11:40:00", "error_message": "Table x does not exist"},
    ],
    "ch-2": [
        {"code": 60, "name": "UNKNOWN_TABLE", "error_count": "2",
         "last_seen": "2026-01-14 11:45:00", "error_message": "Table y does not exist"},
    ],
}


def cluster(requests: list[httpx.Request], down: set[str] = frozenset()):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        host = request.url.host
        if host in down:
            raise httpx.ConnectError("connection refused", request=request)
        rows = ERROR_ROWS if "system.errors" in request.content.decode() else QUERY_ROWS
        body = "\n".join(json.dumps(row) for row in rows.get(host, []))
        return httpx.Response(200, text=body + "\n")

    return httpx.MockTransport(handler)


def make_pipeline(transport: httpx.MockTransport) -> ReportPipeline:
    fetcher = ClickHouseNodeFetcher(user="monitor", password="pw", transport=transport)
    return ReportPipeline(
        fetcher, ["http://ch-1:8123", "http://ch-2:8123"], clock=lambda: NOW
    )


def test_fetcher_from_settings():
    settings = ClickcheckSettings(
        _env_file=None, user="monitor", password="pw", accept_invalid_certificate=True
    )
    client = ClickHouseNodeFetcher.from_settings(settings).client_for("https://ch-1:8443/")

    assert client.url == "https://ch-1:8443"
    assert client.user == "monitor"
    assert client.password == "pw"
    assert client.verify is False


@pytest.mark.asyncio
async def test_top_queries_across_nodes():
    requests: list[httpx.Request] = []
    report = await make_pipeline(cluster(requests)).run(ReportConfig(last=timedelta(hours=1)))

    assert len(requests) == 2
    assert all(r.url.params["param_start"] == "2026-01-14 11:00:00" for r in requests)

    top = report.rows[0]
    assert top.fingerprint == "0x1234"
    assert top.totals.executions == 3
    assert top.totals.duration_ms == 400
    assert top.totals.cpu_time_us == 30_000
    assert top.totals.node_count == 2
    assert top.users == ("alice", "bob")
    assert top.nodes == ("http://ch-1:8123", "http://ch-2:8123")
    assert top.totals.first_seen == datetime(2026, 1, 14, 11, 10, tzinfo=UTC)
    assert top.totals.last_seen == datetime(2026, 1, 14, 11, 55, tzinfo=UTC)
    assert report.rows[1].fingerprint == "0xabcd"


@pytest.mark.asyncio
async def test_top_errors_across_nodes():
    requests: list[httpx.Request] = []
    report = await make_pipeline(cluster(requests)).run(
        ReportConfig(kind=RecordKind.ERROR, error_codes=(60,))
    )

    assert all(r.url.params["param_codes"] == "[60]" for r in requests)
    [row] = report.rows
    assert row.fingerprint == "60"
    assert row.name == "UNKNOWN_TABLE"
    assert row.totals.error_count == 5
    assert row.totals.node_count == 2


@pytest.mark.asyncio
async def test_unreachable_node_degrades_report():
    requests: list[httpx.Request] = []
    report = await make_pipeline(cluster(requests, down={"ch-2"})).run(ReportConfig())

    assert report.degraded
    assert report.failures[0].node == "http://ch-2:8123"
    assert report.failures[0].reason is FailureReason.UNREACHABLE
    assert report.rows[0].totals.duration_ms == 100
    assert report.rows[0].totals.node_count == 1


@pytest.mark.asyncio
async def test_inspect_pushes_fingerprint_down():
    requests: list[httpx.Request] = []
    report = await make_pipeline(cluster(requests)).inspect(ReportConfig(fingerprint="0x1234"))

    assert all(r.url.params["param_fingerprint"] == "4660" for r in requests)
    assert [b.node for b in report.rows[0].per_node] == ["http://ch-1:8123", "http://ch-2:8123"]


def one_bad_node(bad: httpx.Response) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "ch-2":
            return bad
        body = "\n".join(json.dumps(row) for row in QUERY_ROWS["ch-1"])
        return httpx.Response(200, text=body + "\n")

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_garbage_gzip_body_degrades_report():
    transport = one_bad_node(
        httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")
    )
    report = await make_pipeline(transport).run(ReportConfig())

    assert report.degraded
    [failure] = report.failures
    assert failure.node == "http://ch-2:8123"
    assert failure.reason is FailureReason.QUERY_ERROR
    assert report.rows[0].fingerprint == "0x1234"
    assert report.rows[0].totals.node_count == 1


@pytest.mark.asyncio
async def test_out_of_range_timestamp_degrades_report():
    bad_row = {"normalized_query_hash": 1, "last_seen": 1e20}
    transport = one_bad_node(httpx.Response(200, text=json.dumps(bad_row) + "\n"))
    report = await make_pipeline(transport).run(ReportConfig())

    assert report.degraded
    [failure] = report.failures
    assert failure.reason is FailureReason.QUERY_ERROR
    assert "unparsable timestamp" in failure.message
    assert [row.fingerprint for row in report.rows] == ["0x1234"]


@pytest.mark.asyncio
async def test_inspect_accepts_uppercase_prefix():
    requests: list[httpx.Request] = []
    report = await make_pipeline(cluster(requests)).inspect(ReportConfig(fingerprint="0X1234"))

    assert all(r.url.params["param_fingerprint"] == "4660" for r in requests)
    [row] = report.rows
    assert row.fingerprint == "0x1234"
    assert row.totals.node_count == 2


@pytest.mark.asyncio
async def test_inspect_fingerprint_without_prefix_matches_fetched_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        row = {"normalized_query_hash": "255", "query": "SELECT 1",
               "last_seen": "2026-01-14 11:30:00", "duration_ms": "5"}
        return httpx.Response(200, text=json.dumps(row) + "\n")

    report = await make_pipeline(httpx.MockTransport(handler)).inspect(
        ReportConfig(fingerprint="FF")
    )

    [row] = report.rows
    assert row.fingerprint == "0xff"
    assert row.totals.duration_ms == 10
