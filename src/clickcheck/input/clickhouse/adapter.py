from collections.abc import AsyncIterator

import httpx

from clickcheck.core.config import ClickcheckSettings, FetchParams
from clickcheck.domain import RawRecord
from clickcheck.input.clickhouse.client import ClickHouseHttpClient
from clickcheck.input.clickhouse.parser import RowParser
from clickcheck.input.clickhouse.queries import render


class ClickHouseNodeFetcher:
    """NodeFetcher for ClickHouse nodes addressed by HTTP(S) URL.

    Usage:
        fetcher = ClickHouseNodeFetcher.from_settings(ClickcheckSettings())

        async for record in fetcher.fetch("https://ch-1:8443", params):
            ...

    Every ``fetch`` opens its own HTTP client, so concurrent fetches share
    no connection state. The node URL doubles as the node identifier.
    """

    def __init__(
        self,
        user: str = "default",
        password: str = "",
        timeout: float = 30.0,
        verify: bool = True,
        parser: RowParser | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user = user
        self._password = password
        self._timeout = timeout
        self._verify = verify
        self._parser = parser or RowParser()
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ClickcheckSettings) -> "ClickHouseNodeFetcher":
        return cls(
            user=settings.user,
            password=settings.password.get_secret_value(),
            timeout=settings.timeout,
            verify=not settings.accept_invalid_certificate,
        )

    def client_for(self, node: str) -> ClickHouseHttpClient:
        return ClickHouseHttpClient(
            url=node,
            user=self._user,
            password=self._password,
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
        )

    async def fetch(self, node: str, params: FetchParams) -> AsyncIterator[RawRecord]:
        client = self.client_for(node)
        query = render(params)

        async for row in client.stream_rows(query):
            yield self._parser.parse_row(row, node, params.kind)
