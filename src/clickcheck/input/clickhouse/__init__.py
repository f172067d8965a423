from clickcheck.input.clickhouse.adapter import ClickHouseNodeFetcher
from clickcheck.input.clickhouse.client import ClickHouseHttpClient
from clickcheck.input.clickhouse.parser import RowParser
from clickcheck.input.clickhouse.queries import RenderedQuery, render

__all__ = [
    "ClickHouseNodeFetcher",
    "ClickHouseHttpClient",
    "RowParser",
    "RenderedQuery",
    "render",
]
