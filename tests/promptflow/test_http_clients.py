"""Tests for the generic HTTP client and the scraper service client."""

import httpx
import pytest

from promptflow import config
from promptflow.integrations.http_client import HttpClient, HttpClientError
from promptflow.integrations.scraper import ScraperClient, ScraperServiceError, build_scrape_payload


class TestHttpClient:

    @pytest.mark.asyncio
    async def test_get_never_sends_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = HttpClient(transport=httpx.MockTransport(handler))
        resp = await client.request("get", "https://x.test", body={"ignored": True})
        await client.close()

        assert seen[0].content == b""
        assert resp.ok is True
        assert resp.body == {"ok": True}

    @pytest.mark.asyncio
    async def test_empty_response_body(self):
        client = HttpClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))
        resp = await client.request("DELETE", "https://x.test/1")
        assert resp.status_code == 204
        assert resp.body == ""

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow")

        client = HttpClient(transport=httpx.MockTransport(handler))
        with pytest.raises(HttpClientError, match="timed out"):
            await client.request("GET", "https://x.test")


class TestScraperClient:

    def test_endpoint(self):
        assert ScraperClient("http://svc:8080/").endpoint == "http://svc:8080/scrape"
        assert ScraperClient("http://svc:8080/scrape").endpoint == "http://svc:8080/scrape"

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setattr(config, "SCRAPER_SERVICE_URL", "http://env-scraper")
        assert ScraperClient().endpoint == "http://env-scraper/scrape"

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        with pytest.raises(ScraperServiceError, match="SCRAPER_SERVICE_URL"):
            await ScraperClient("").scrape({"url": "https://x.test"})

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        client = ScraperClient("http://svc", transport=httpx.MockTransport(handler))
        with pytest.raises(ScraperServiceError, match="timed out") as exc_info:
            await client.scrape({"url": "https://x.test"})
        assert exc_info.value.to_payload() == {"error": "Scraper service timed out", "details": "slow"}

    def test_payload_omits_partial_link_fields(self):
        payload = build_scrape_payload("https://x.test", ".c", [{"name": "a", "selector": "b"}], "link", None)
        assert "linkFieldName" not in payload
        assert "linkSelector" not in payload
