"""Core domain models for cross-node telemetry aggregation."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType

from clickcheck.domain.exceptions import MergeInvariantViolation

# Numeric fields combined by summation across rows and nodes.
SUMMED_FIELDS: tuple[str, ...] = (
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


class RecordKind(StrEnum):
    """Telemetry source a record was read from."""

    QUERY = "query"
    ERROR = "error"


class FailureReason(StrEnum):
    UNREACHABLE = "unreachable"
    QUERY_ERROR = "query_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One row returned by a node, already normalized to a fingerprint."""

    fingerprint: str
    node: str
    timestamp: datetime
    kind: RecordKind = RecordKind.QUERY
    sample: str = ""
    name: str | None = None
    first_seen: datetime | None = None
    users: tuple[str, ...] = ()
    databases: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    executions: int = 1
    duration_ms: int = 0
    cpu_time_us: int = 0
    memory_bytes: int = 0
    read_rows: int = 0
    read_bytes: int = 0
    written_rows: int = 0
    written_bytes: int = 0
    network_receive_bytes: int = 0
    network_send_bytes: int = 0
    error_count: int = 0

    @property
    def started(self) -> datetime:
        return self.first_seen or self.timestamp


@dataclass(slots=True)
class NodeContribution:
    """Partial statistics one node contributed to a group."""

    node: str
    count: int = 0
    sums: dict[str, int] = field(default_factory=lambda: dict.fromkeys(SUMMED_FIELDS, 0))
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    users: set[str] = field(default_factory=set)
    databases: set[str] = field(default_factory=set)
    tables: set[str] = field(default_factory=set)

    def absorb(self, record: RawRecord) -> None:
        self.count += 1
        for name in SUMMED_FIELDS:
            self.sums[name] += getattr(record, name)

        started = record.started
        if self.first_seen is None or started < self.first_seen:
            self.first_seen = started
        if self.last_seen is None or record.timestamp > self.last_seen:
            self.last_seen = record.timestamp

        self.users.update(record.users)
        self.databases.update(record.databases)
        self.tables.update(record.tables)


@dataclass(frozen=True, slots=True)
class MergedTotals:
    """Cluster-wide statistics derived from node contributions."""

    count: int = 0
    node_count: int = 0
    executions: int = 0
    duration_ms: int = 0
    cpu_time_us: int = 0
    memory_bytes: int = 0
    read_rows: int = 0
    read_bytes: int = 0
    written_rows: int = 0
    written_bytes: int = 0
    network_receive_bytes: int = 0
    network_send_bytes: int = 0
    error_count: int = 0
    first_seen: datetime | None = None
    last_seen: datetime | None = None

    @classmethod
    def from_contributions(cls, contributions: Iterable[NodeContribution]) -> "MergedTotals":
        contributions = list(contributions)
        sums = {name: sum(c.sums[name] for c in contributions) for name in SUMMED_FIELDS}
        first_seen = [c.first_seen for c in contributions if c.first_seen is not None]
        last_seen = [c.last_seen for c in contributions if c.last_seen is not None]
        return cls(
            count=sum(c.count for c in contributions),
            node_count=len({c.node for c in contributions}),
            first_seen=min(first_seen, default=None),
            last_seen=max(last_seen, default=None),
            **sums,
        )


class ImpactScore(Mapping[str, int]):
    """Read-only mapping of impact metric name to value."""

    __slots__ = ("_metrics",)

    def __init__(self, metrics: Mapping[str, int] | None = None) -> None:
        self._metrics = MappingProxyType(dict(metrics or {}))

    def __getitem__(self, name: str) -> int:
        return self._metrics[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._metrics)

    def __len__(self) -> int:
        return len(self._metrics)

    def __repr__(self) -> str:
        return f"ImpactScore({dict(self._metrics)!r})"


@dataclass(frozen=True, slots=True)
class NodeBreakdown:
    node: str
    totals: MergedTotals


@dataclass(slots=True)
class AggregateGroup:
    """All rows sharing one fingerprint, tracked per contributing node.

    Totals are never accumulated directly: every change recomputes them from
    the per-node contributions, so a node can be excluded later without
    replaying the raw rows.
    """

    fingerprint: str
    kind: RecordKind
    sample: str = ""
    name: str | None = None
    contributions: dict[str, NodeContribution] = field(default_factory=dict)
    totals: MergedTotals = field(default_factory=MergedTotals)
    _frozen: bool = field(default=False, repr=False)

    @classmethod
    def from_record(cls, record: RawRecord) -> "AggregateGroup":
        return cls(
            fingerprint=record.fingerprint,
            kind=record.kind,
            sample=record.sample,
            name=record.name,
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(sorted(self.contributions))

    @property
    def users(self) -> tuple[str, ...]:
        return tuple(sorted(set().union(*(c.users for c in self.contributions.values()))))

    @property
    def databases(self) -> tuple[str, ...]:
        return tuple(sorted(set().union(*(c.databases for c in self.contributions.values()))))

    @property
    def tables(self) -> tuple[str, ...]:
        return tuple(sorted(set().union(*(c.tables for c in self.contributions.values()))))

    def add(self, record: RawRecord) -> None:
        self._ensure_mutable()
        if not record.node:
            raise MergeInvariantViolation(
                f"Record for fingerprint {record.fingerprint!r} has no node"
            )
        if record.fingerprint != self.fingerprint:
            raise MergeInvariantViolation(
                f"Record fingerprint {record.fingerprint!r} does not match group {self.fingerprint!r}"
            )
        if record.kind != self.kind:
            raise MergeInvariantViolation(
                f"Record kind {record.kind} does not match group kind {self.kind}"
            )

        contribution = self.contributions.get(record.node)
        if contribution is None:
            contribution = NodeContribution(node=record.node)
            self.contributions[record.node] = contribution
        contribution.absorb(record)
        self._recompute()

    def exclude_node(self, node: str) -> bool:
        """Drop one node's contribution. Returns False if it never contributed."""
        self._ensure_mutable()
        if self.contributions.pop(node, None) is None:
            return False
        self._recompute()
        return True

    def freeze(self) -> None:
        self._frozen = True

    def breakdown(self) -> tuple[NodeBreakdown, ...]:
        return tuple(
            NodeBreakdown(node=node, totals=MergedTotals.from_contributions([self.contributions[node]]))
            for node in self.nodes
        )

    def _recompute(self) -> None:
        self.totals = MergedTotals.from_contributions(self.contributions.values())

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise MergeInvariantViolation(f"Group {self.fingerprint!r} is frozen")


@dataclass(frozen=True, slots=True)
class ReportRow:
    rank: int
    fingerprint: str
    kind: RecordKind
    sample: str
    name: str | None
    totals: MergedTotals
    scores: ImpactScore
    nodes: tuple[str, ...] = ()
    users: tuple[str, ...] = ()
    databases: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    per_node: tuple[NodeBreakdown, ...] = ()


@dataclass(frozen=True, slots=True)
class NodeFailure:
    node: str
    reason: FailureReason
    message: str = ""


@dataclass(frozen=True, slots=True)
class Report:
    """Ranked result of one pipeline run."""

    kind: RecordKind
    rows: tuple[ReportRow, ...]
    nodes: tuple[str, ...]
    sort_metric: str
    scoring_version: int
    failures: tuple[NodeFailure, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def degraded(self) -> bool:
        return bool(self.failures)

    @property
    def unreachable_nodes(self) -> tuple[str, ...]:
        return tuple(f.node for f in self.failures)


@dataclass(frozen=True, slots=True)
class ClusterTotal:
    """Totals over every group that passed the filters."""

    kind: RecordKind
    group_count: int
    totals: MergedTotals
    scores: ImpactScore
    nodes: tuple[str, ...]
    scoring_version: int
    failures: tuple[NodeFailure, ...] = ()
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def degraded(self) -> bool:
        return bool(self.failures)
