import logging
from datetime import UTC, datetime

import pytest

from clickcheck.core import FanOutCollector, FetchParams, TimeWindow
from clickcheck.domain import (
    ClusterUnreachable,
    FailureReason,
    NodeQueryError,
    NodeUnreachable,
    RawRecord,
    RecordKind,
)
from clickcheck.input import ManualFetcher

T0 = datetime(2026, 1, 14, 12, 0, 0, tzinfo=UTC)
PARAMS = FetchParams(kind=RecordKind.QUERY, window=TimeWindow())


def make_record(node: str, fingerprint: str = "0xa") -> RawRecord:
    return RawRecord(fingerprint=fingerprint, node=node, timestamp=T0)


@pytest.mark.asyncio
async def test_collects_from_every_node() -> None:
    fetcher = ManualFetcher(
        {
            "n1": [make_record("n1"), make_record("n1", "0xb")],
            "n2": [make_record("n2")],
        }
    )
    collected = await FanOutCollector(fetcher, ["n1", "n2"]).collect(PARAMS)

    assert set(collected.succeeded_nodes) == {"n1", "n2"}
    assert collected.failures == ()
    assert sum(len(r.records) for r in collected.results) == 3


@pytest.mark.asyncio
async def test_results_in_completion_order() -> None:
    fetcher = ManualFetcher(
        {"slow": [make_record("slow")], "fast": [make_record("fast")]},
        delays={"slow": 0.05},
    )
    collected = await FanOutCollector(fetcher, ["slow", "fast"]).collect(PARAMS)
    assert collected.succeeded_nodes == ("fast", "slow")


@pytest.mark.asyncio
async def test_duplicate_nodes_fetched_once() -> None:
    fetcher = ManualFetcher({"n1": [make_record("n1")]})
    collector = FanOutCollector(fetcher, ["n1", "n1"])

    assert collector.nodes == ("n1",)
    collected = await collector.collect(PARAMS)
    assert len(collected.results) == 1


@pytest.mark.asyncio
async def test_node_failures_are_classified(caplog: pytest.LogCaptureFixture) -> None:
    fetcher = ManualFetcher(
        {
            "ok": [make_record("ok")],
            "down": NodeUnreachable("down", "connection refused"),
            "broken": NodeQueryError("broken", "Code: 62. Syntax error"),
        }
    )
    with caplog.at_level(logging.WARNING, logger="clickcheck"):
        collected = await FanOutCollector(fetcher, ["ok", "down", "broken"]).collect(PARAMS)

    assert collected.succeeded_nodes == ("ok",)
    assert [(f.node, f.reason) for f in collected.failures] == [
        ("down", FailureReason.UNREACHABLE),
        ("broken", FailureReason.QUERY_ERROR),
    ]
    assert collected.failures[0].message == "connection refused"
    assert "Node down failed" in caplog.text


@pytest.mark.asyncio
async def test_timeout_marks_slow_nodes() -> None:
    fetcher = ManualFetcher(
        {"fast": [make_record("fast")], "slow": [make_record("slow")]},
        delays={"slow": 5},
    )
    collected = await FanOutCollector(fetcher, ["fast", "slow"], timeout=0.05).collect(PARAMS)

    assert collected.succeeded_nodes == ("fast",)
    assert len(collected.failures) == 1
    assert collected.failures[0].node == "slow"
    assert collected.failures[0].reason is FailureReason.TIMEOUT


@pytest.mark.asyncio
async def test_all_nodes_failing_raises() -> None:
    fetcher = ManualFetcher({"n1": NodeUnreachable("n1", "refused")})

    with pytest.raises(ClusterUnreachable, match="All nodes failed: n1, n2") as exc_info:
        await FanOutCollector(fetcher, ["n1", "n2"]).collect(PARAMS)

    assert [f.node for f in exc_info.value.failures] == ["n1", "n2"]


@pytest.mark.asyncio
async def test_no_nodes_raises() -> None:
    with pytest.raises(ClusterUnreachable):
        await FanOutCollector(ManualFetcher({}), []).collect(PARAMS)


@pytest.mark.asyncio
async def test_unexpected_errors_propagate() -> None:
    fetcher = ManualFetcher({"n1": RuntimeError("bug")})
    with pytest.raises(RuntimeError, match="bug"):
        await FanOutCollector(fetcher, ["n1"]).collect(PARAMS)
