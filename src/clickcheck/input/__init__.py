from clickcheck.input.base import NodeFetcher
from clickcheck.input.clickhouse import ClickHouseHttpClient, ClickHouseNodeFetcher, RowParser
from clickcheck.input.dump import JsonDumpFetcher
from clickcheck.input.manual import ManualFetcher

__all__ = [
    "NodeFetcher",
    "ManualFetcher",
    "ClickHouseNodeFetcher",
    "ClickHouseHttpClient",
    "RowParser",
    "JsonDumpFetcher",
]
