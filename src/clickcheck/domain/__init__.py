"""Domain models and errors for cross-node telemetry aggregation."""

from clickcheck.domain.exceptions import (
    ClickcheckError,
    ClusterUnreachable,
    ConfigValidationError,
    MergeInvariantViolation,
    NodeError,
    NodeQueryError,
    NodeUnreachable,
)
from clickcheck.domain.models import (
    SUMMED_FIELDS,
    AggregateGroup,
    ClusterTotal,
    FailureReason,
    ImpactScore,
    MergedTotals,
    NodeBreakdown,
    NodeContribution,
    NodeFailure,
    RawRecord,
    RecordKind,
    Report,
    ReportRow,
)

__all__ = [
    "SUMMED_FIELDS",
    "AggregateGroup",
    "ClusterTotal",
    "FailureReason",
    "ImpactScore",
    "MergedTotals",
    "NodeBreakdown",
    "NodeContribution",
    "NodeFailure",
    "RawRecord",
    "RecordKind",
    "Report",
    "ReportRow",
    "ClickcheckError",
    "ClusterUnreachable",
    "ConfigValidationError",
    "MergeInvariantViolation",
    "NodeError",
    "NodeQueryError",
    "NodeUnreachable",
]
