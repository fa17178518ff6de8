# tests/test_ingest.py — Scrape and AI enrichment endpoint tests
import json

import httpx
import pytest
from httpx import AsyncClient

from analyst import ForesightAnalyst, LLMProvider, get_analyst
from main import app
from scraper import FirecrawlClient, get_scraper
from tests.conftest import get_auth_headers

ARTICLE = (
    "Municipal fleets in three Nordic capitals have replaced more than half of their diesel "
    "buses with battery-electric models, and procurement rules now forbid new diesel purchases."
)


def _use_scraper(handler):
    app.dependency_overrides[get_scraper] = lambda: FirecrawlClient(
        api_key="fc-test", base_url="https://firecrawl.test", transport=httpx.MockTransport(handler),
    )


def _use_analyst(handler):
    provider = LLMProvider(name="test", base_url="https://llm.test/v1", api_key="sk-test", model="m")
    app.dependency_overrides[get_analyst] = lambda: ForesightAnalyst(
        provider, transport=httpx.MockTransport(handler),
    )


def _completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.mark.asyncio
class TestScrapeEndpoint:
    async def test_success(self, client: AsyncClient, owner_user):
        _use_scraper(lambda r: httpx.Response(200, json={
            "success": True,
            "data": {"markdown": "# Buses\n\nElectric now.", "metadata": {"title": "Buses"}},
        }))
        res = await client.post(
            "/api/v1/ingest/scrape", headers=get_auth_headers(owner_user),
            json={"url": "example.com/buses", "options": {"wait_for": 500}},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["success"] is True
        assert body["data"]["markdown"] == "# Buses\n\nElectric now."
        assert body["data"]["metadata"]["title"] == "Buses"

    async def test_missing_url(self, client: AsyncClient, owner_user):
        res = await client.post("/api/v1/ingest/scrape", headers=get_auth_headers(owner_user), json={})
        assert res.status_code == 400
        body = res.json()
        assert body["success"] is False
        assert body["code"] == "url_required"

    async def test_not_configured(self, client: AsyncClient, owner_user):
        res = await client.post(
            "/api/v1/ingest/scrape", headers=get_auth_headers(owner_user), json={"url": "example.com"},
        )
        assert res.status_code == 500
        assert res.json()["code"] == "not_configured"

    async def test_rate_limited(self, client: AsyncClient, owner_user):
        _use_scraper(lambda r: httpx.Response(429, json={}))
        res = await client.post(
            "/api/v1/ingest/scrape", headers=get_auth_headers(owner_user), json={"url": "example.com"},
        )
        assert res.status_code == 429
        assert res.json()["code"] == "rate_limited"

    async def test_malformed_provider_body(self, client: AsyncClient, owner_user):
        _use_scraper(lambda r: httpx.Response(200, json={"success": True, "data": "oops"}))
        res = await client.post(
            "/api/v1/ingest/scrape", headers=get_auth_headers(owner_user), json={"url": "example.com"},
        )
        assert res.status_code == 502
        body = res.json()
        assert body["success"] is False
        assert body["code"] == "malformed_response"

    async def test_requires_auth(self, client: AsyncClient):
        res = await client.post("/api/v1/ingest/scrape", json={"url": "example.com"})
        assert res.status_code in (401, 403)


@pytest.mark.asyncio
class TestSummarizeEndpoint:
    async def test_success(self, client: AsyncClient, owner_user):
        seen = {}

        def handler(request):
            seen["prompt"] = json.loads(request.content)["messages"][1]["content"]
            return _completion(json.dumps({
                "summary": "Nordic cities electrify buses.",
                "takeaways": ["Diesel bans", "Procurement rules", "Battery costs"],
                "tags": ["Mobility", "electrification"],
                "relevance": 77,
                "horizon": "0_5",
                "certainty": "certain",
            }))

        _use_analyst(handler)
        res = await client.post(
            "/api/v1/ingest/summarize", headers=get_auth_headers(owner_user),
            json={"content": ARTICLE, "title": "Electric buses", "url": "https://example.com"},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["tags"] == ["mobility", "electrification"]
        assert body["relevance"] == 77
        assert body["horizon"] == "0_5"
        assert "Title: Electric buses" in seen["prompt"]

    async def test_content_required(self, client: AsyncClient, owner_user):
        _use_analyst(lambda r: _completion("{}"))
        res = await client.post("/api/v1/ingest/summarize", headers=get_auth_headers(owner_user), json={})
        assert res.status_code == 400
        assert res.json()["code"] == "content_required"

    async def test_content_too_short(self, client: AsyncClient, owner_user):
        _use_analyst(lambda r: _completion("{}"))
        res = await client.post(
            "/api/v1/ingest/summarize", headers=get_auth_headers(owner_user), json={"content": "Too short."},
        )
        assert res.status_code == 400
        assert res.json()["code"] == "content_too_short"

    async def test_insufficient_content(self, client: AsyncClient, owner_user):
        _use_analyst(lambda r: _completion('{"insufficient_content": true}'))
        res = await client.post(
            "/api/v1/ingest/summarize", headers=get_auth_headers(owner_user), json={"content": ARTICLE},
        )
        assert res.status_code == 422
        assert res.json()["code"] == "insufficient_content"

    async def test_quota_exhausted(self, client: AsyncClient, owner_user):
        _use_analyst(lambda r: httpx.Response(402, json={}))
        res = await client.post(
            "/api/v1/ingest/summarize", headers=get_auth_headers(owner_user), json={"content": ARTICLE},
        )
        assert res.status_code == 402
        assert res.json()["code"] == "quota_exhausted"

    async def test_not_configured(self, client: AsyncClient, owner_user):
        app.dependency_overrides[get_analyst] = lambda: ForesightAnalyst(None)
        res = await client.post(
            "/api/v1/ingest/summarize", headers=get_auth_headers(owner_user), json={"content": ARTICLE},
        )
        assert res.status_code == 500
        assert res.json()["code"] == "not_configured"


@pytest.mark.asyncio
class TestTrendDescriptionEndpoint:
    async def test_success(self, client: AsyncClient, owner_user):
        seen = {}

        def handler(request):
            seen["prompt"] = json.loads(request.content)["messages"][1]["content"]
            return _completion("Transit electrification is accelerating [1].")

        _use_analyst(handler)
        res = await client.post(
            "/api/v1/ingest/trend-description", headers=get_auth_headers(owner_user),
            json={"title": "Transit electrification", "signals": [{"title": "Electric buses", "summary": "Half of fleets"}]},
        )
        assert res.status_code == 200
        assert res.json() == {"description": "Transit electrification is accelerating [1]."}
        assert "[1] Electric buses: Half of fleets" in seen["prompt"]

    async def test_title_required(self, client: AsyncClient, owner_user):
        _use_analyst(lambda r: _completion("x"))
        res = await client.post(
            "/api/v1/ingest/trend-description", headers=get_auth_headers(owner_user), json={"signals": []},
        )
        assert res.status_code == 400
        assert res.json()["code"] == "title_required"
