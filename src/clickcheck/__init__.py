__version__ = "0.1.0"

from clickcheck.core import ClickcheckSettings, ReportConfig, ReportPipeline
from clickcheck.domain import (
    AggregateGroup,
    ClusterTotal,
    ClusterUnreachable,
    ConfigValidationError,
    MergedTotals,
    RawRecord,
    RecordKind,
    Report,
    ReportRow,
)
from clickcheck.input import ClickHouseNodeFetcher, JsonDumpFetcher, ManualFetcher, NodeFetcher
from clickcheck.output import ConsoleReportOutput, ReportOutput
from clickcheck.scoring import ScoringEngine

__all__ = [
    "__version__",
    "ReportPipeline",
    "ReportConfig",
    "ClickcheckSettings",
    "RawRecord",
    "RecordKind",
    "AggregateGroup",
    "MergedTotals",
    "Report",
    "ReportRow",
    "ClusterTotal",
    "ConfigValidationError",
    "ClusterUnreachable",
    "NodeFetcher",
    "ManualFetcher",
    "ClickHouseNodeFetcher",
    "JsonDumpFetcher",
    "ScoringEngine",
    "ReportOutput",
    "ConsoleReportOutput",
]
