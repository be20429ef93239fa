"""Generic async HTTP client used by ApiCall nodes.

Usage:
    client = HttpClient()
    resp = await client.request("POST", "https://example.com/hook", body={"a": 1})
    resp.status_code, resp.body
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from ..settings import API_NODE_HTTP_TIMEOUT, HTTP_MAX_CONNECTIONS, HTTP_MAX_KEEPALIVE

logger = logging.getLogger(__name__)


class HttpClientError(Exception):
    """Raised when a request fails at the transport level."""


@dataclass
class HttpResponse:
    status_code: int
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def parse_body(resp: httpx.Response) -> Any:
    """Parsed JSON when the body is JSON, otherwise the raw text."""
    if not resp.content:
        return ""
    try:
        return resp.json()
    except ValueError:
        return resp.text


class HttpClient:
    """Async HTTP client with a lazily created, shared connection pool.

    Args:
        timeout: Default request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        timeout: float = API_NODE_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=HTTP_MAX_KEEPALIVE,
                ),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """Issue a request.

        Mappings and lists are sent as JSON, strings as the raw body. GET
        requests never carry a body.

        Raises:
            HttpClientError: On timeouts, connection failures and invalid URLs
        """
        kwargs: Dict[str, Any] = {"headers": headers or {}}
        if timeout is not None:
            kwargs["timeout"] = timeout
        if method.upper() != "GET" and body is not None and body != "":
            if isinstance(body, (dict, list)):
                kwargs["json"] = body
            else:
                kwargs["content"] = str(body)

        client = await self._get_client()
        try:
            resp = await client.request(method.upper(), url, **kwargs)
        except httpx.TimeoutException as e:
            raise HttpClientError(f"Request timed out: {method.upper()} {url}") from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise HttpClientError(f"Invalid URL: {url}") from e
        except httpx.HTTPError as e:
            raise HttpClientError(f"Request failed: {method.upper()} {url}: {e}") from e

        logger.info(f"{method.upper()} {url} -> {resp.status_code}")
        return HttpResponse(
            status_code=resp.status_code,
            body=parse_body(resp),
            headers=dict(resp.headers),
        )
