import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from clickcheck.domain import NodeQueryError, NodeUnreachable
from clickcheck.input.clickhouse.queries import RenderedQuery

logger = logging.getLogger(__name__)


class ClickHouseHttpClient:
    """Streaming client for the ClickHouse HTTP interface of one node.

    Rows are requested as JSONEachRow and yielded one line at a time, so a
    large result never has to be buffered in full.

    Authentication uses the X-ClickHouse-User / X-ClickHouse-Key headers.
    """

    AUTH_FAILURE_CODES = (401, 403, 516)

    def __init__(
        self,
        url: str,
        user: str = "default",
        password: str = "",
        timeout: float = 30.0,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.user = user
        self.password = password
        self.timeout = timeout
        self.verify = verify
        self._transport = transport

    async def stream_rows(self, query: RenderedQuery) -> AsyncIterator[dict[str, Any]]:
        """Execute a query and yield decoded rows.

        Raises:
            NodeUnreachable: On connection, TLS, timeout or authentication failure.
            NodeQueryError: On a server-side query error or undecodable output.
        """
        request_params = {
            "database": "system",
            "default_format": "JSONEachRow",
            **query.params,
        }
        headers = {
            "X-ClickHouse-User": self.user,
            "X-ClickHouse-Key": self.password,
        }

        logger.debug("Querying %s with params %s", self.url, sorted(query.params))

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, verify=self.verify, transport=self._transport
            ) as client:
                async with client.stream(
                    "POST",
                    f"{self.url}/",
                    params=request_params,
                    content=query.sql.encode("utf-8"),
                    headers=headers,
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        self._raise_for_status(response)

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        yield self._decode(line)
        except (httpx.TransportError, httpx.InvalidURL) as exc:
            raise NodeUnreachable(self.url, f"{type(exc).__name__}: {exc}") from exc
        except (httpx.DecodingError, httpx.StreamError) as exc:
            raise NodeQueryError(self.url, f"undecodable response: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response) -> None:
        message = response.text.strip()[:500] or f"HTTP {response.status_code}"
        if response.status_code in self.AUTH_FAILURE_CODES:
            raise NodeUnreachable(self.url, f"authentication failed: {message}")
        raise NodeQueryError(self.url, message)

    def _decode(self, line: str) -> dict[str, Any]:
        # ClickHouse reports errors raised mid-stream as plain text lines.
        try:
            row = json.loads(line)
        except json.JSONDecodeError as exc:
            raise NodeQueryError(self.url, f"malformed response line: {line[:200]!r}") from exc
        if not isinstance(row, dict):
            raise NodeQueryError(self.url, f"expected a JSON object, got {line[:200]!r}")
        return row
