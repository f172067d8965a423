from datetime import UTC, datetime

from clickcheck.core import MergeEngine, NodeResult
from clickcheck.domain import RawRecord, RecordKind

T0 = datetime(2026, 1, 14, 12, 0, 0, tzinfo=UTC)


def make_record(node: str, fingerprint: str = "0xa", **kwargs) -> RawRecord:
    kwargs.setdefault("timestamp", T0)
    return RawRecord(fingerprint=fingerprint, node=node, **kwargs)


def result(node: str, *records: RawRecord) -> NodeResult:
    return NodeResult(node=node, records=records)


def test_groups_by_fingerprint_across_nodes() -> None:
    groups = MergeEngine().merge(
        [
            result("n1", make_record("n1", duration_ms=100), make_record("n1", "0xb", duration_ms=5)),
            result("n2", make_record("n2", duration_ms=300)),
        ]
    )

    assert set(groups) == {"0xa", "0xb"}
    assert groups["0xa"].totals.duration_ms == 400
    assert groups["0xa"].totals.node_count == 2
    assert groups["0xb"].totals.node_count == 1


def test_first_sample_wins() -> None:
    groups = MergeEngine().merge(
        [
            result("n2", make_record("n2", sample="select 1 -- n2")),
            result("n1", make_record("n1", sample="select 1 -- n1")),
        ]
    )
    assert groups["0xa"].sample == "select 1 -- n2"


def test_merge_order_does_not_change_totals() -> None:
    n1 = result("n1", make_record("n1", cpu_time_us=10_000, read_rows=7))
    n2 = result("n2", make_record("n2", cpu_time_us=20_000, read_rows=3))

    forward = MergeEngine().merge([n1, n2])["0xa"].totals
    backward = MergeEngine().merge([n2, n1])["0xa"].totals
    assert forward == backward


def test_kind_mismatch_is_skipped() -> None:
    engine = MergeEngine()
    groups = engine.merge(
        [
            result(
                "n1",
                make_record("n1", "60", kind=RecordKind.ERROR, error_count=3),
                make_record("n1", "60", kind=RecordKind.QUERY),
            )
        ]
    )
    assert groups["60"].kind is RecordKind.ERROR
    assert groups["60"].totals.error_count == 3
    assert engine.skipped == 1


def test_skips_record_with_foreign_node() -> None:
    engine = MergeEngine()
    groups = engine.merge([result("n1", make_record("n2"), make_record("n1", duration_ms=9))])

    assert engine.skipped == 1
    assert groups["0xa"].nodes == ("n1",)
    assert groups["0xa"].totals.duration_ms == 9


def test_skips_record_without_fingerprint() -> None:
    engine = MergeEngine()
    groups = engine.merge([result("n1", make_record("n1", ""))])
    assert groups == {}
    assert engine.skipped == 1


def test_exclude_node_drops_empty_groups() -> None:
    groups = MergeEngine().merge(
        [
            result("n1", make_record("n1", duration_ms=100), make_record("n1", "0xb")),
            result("n2", make_record("n2", duration_ms=300)),
        ]
    )
    MergeEngine.exclude_node(groups, "n1")

    assert set(groups) == {"0xa"}
    assert groups["0xa"].totals.duration_ms == 300
    assert groups["0xa"].nodes == ("n2",)


def test_exclude_node_equals_merge_without_it() -> None:
    n1 = result("n1", make_record("n1", read_bytes=11), make_record("n1", "0xb", read_bytes=4))
    n2 = result("n2", make_record("n2", read_bytes=22))
    n3 = result("n3", make_record("n3", "0xb", read_bytes=8))

    excluded = MergeEngine().merge([n1, n2, n3])
    MergeEngine.exclude_node(excluded, "n2")
    direct = MergeEngine().merge([n1, n3])

    assert {fp: g.totals for fp, g in excluded.items()} == {fp: g.totals for fp, g in direct.items()}
