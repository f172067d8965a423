from clickcheck.core.collector import CollectionResult, FanOutCollector, NodeResult
from clickcheck.core.config import ClickcheckSettings, FetchParams, ReportConfig, TimeWindow
from clickcheck.core.merge import MergeEngine
from clickcheck.core.pipeline import ReportPipeline

__all__ = [
    "ClickcheckSettings",
    "CollectionResult",
    "FanOutCollector",
    "FetchParams",
    "MergeEngine",
    "NodeResult",
    "ReportConfig",
    "ReportPipeline",
    "TimeWindow",
]
