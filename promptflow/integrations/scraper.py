"""Client for the external scraping microservice.

The service exposes ``POST /scrape`` taking
``{url, containerSelector, fieldSelectors: [{name, selector}], linkFieldName?,
linkSelector?}`` and returning a list of objects, one per matched container.

Environment:
    SCRAPER_SERVICE_URL - base URL of the service (required to scrape)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .. import config
from ..settings import SCRAPER_HTTP_TIMEOUT
from .http_client import parse_body

logger = logging.getLogger(__name__)


class ScraperServiceError(Exception):
    """Raised when the scraper service cannot produce a result.

    Attributes:
        status: HTTP status of the service response, if one was received
        details: Response body or transport error text
    """

    def __init__(self, message: str, status: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status = status
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": str(self)}
        if self.status is not None:
            payload["status"] = self.status
        if self.details is not None:
            payload["details"] = self.details
        return payload


def build_scrape_payload(
    url: str,
    container_selector: str,
    field_selectors: List[Dict[str, str]],
    link_field_name: Optional[str] = None,
    link_selector: Optional[str] = None,
) -> Dict[str, Any]:
    """Request body; link fields are included only when both are set."""
    payload: Dict[str, Any] = {
        "url": url,
        "containerSelector": container_selector,
        "fieldSelectors": field_selectors,
    }
    if link_field_name and link_selector:
        payload["linkFieldName"] = link_field_name
        payload["linkSelector"] = link_selector
    return payload


class ScraperClient:
    """Async client for the scraper service.

    Args:
        service_url: Base URL. Falls back to SCRAPER_SERVICE_URL.
        timeout: HTTP request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        service_url: Optional[str] = None,
        timeout: float = SCRAPER_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._service_url = service_url if service_url is not None else config.SCRAPER_SERVICE_URL
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self._service_url)

    @property
    def endpoint(self) -> str:
        base = self._service_url.rstrip("/")
        return base if base.endswith("/scrape") else f"{base}/scrape"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def scrape(self, payload: Dict[str, Any]) -> Any:
        """POST ``payload`` to the service and return the scraped data.

        Raises:
            ScraperServiceError: When the URL is not configured, the request
                fails, or the service answers with a non-2xx status
        """
        if not self.configured:
            raise ScraperServiceError("Scraper service URL is not configured (SCRAPER_SERVICE_URL)")

        client = await self._get_client()
        logger.info(f"Scraping {payload.get('url')} via {self.endpoint}")
        try:
            resp = await client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise ScraperServiceError(
                "Scraper service timed out", details=str(e) or type(e).__name__
            ) from e
        except httpx.HTTPError as e:
            raise ScraperServiceError(
                "Could not connect to scraper service", details=str(e) or type(e).__name__
            ) from e

        body = parse_body(resp)
        if not resp.is_success:
            raise ScraperServiceError(
                "Scraper service returned an error", status=resp.status_code, details=body
            )
        return body
