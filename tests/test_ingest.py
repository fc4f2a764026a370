"""
Tests for the analytics telemetry reverse proxy.
"""

from __future__ import annotations

import httpx
import pytest

from app.api.v1.ingest import get_ingest_client
from app.main import app


@pytest.fixture
def upstream():
    """Records requests reaching the upstream host and answers with a canned body."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"status": 1},
            headers={"set-cookie": "ph=1", "x-upstream": "posthog"},
        )

    return seen, handler


@pytest.fixture
async def proxied(client, upstream):
    seen, handler = upstream
    mock_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_ingest_client] = lambda: mock_client
    yield seen
    await mock_client.aclose()


class TestIngestProxy:
    async def test_api_path_forwarded(self, client, proxied):
        resp = await client.post(
            "/ingest/e/?ip=1&ver=1.2",
            content=b'{"event":"$pageview"}',
            headers={"content-type": "application/json", "cookie": "__session=secret"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"status": 1}

        (forwarded,) = proxied
        assert forwarded.method == "POST"
        assert forwarded.url.host == "us.i.posthog.com"
        assert forwarded.url.path == "/e/"
        assert forwarded.url.params["ip"] == "1"
        assert forwarded.url.params["ver"] == "1.2"
        assert forwarded.content == b'{"event":"$pageview"}'
        assert forwarded.headers["content-type"] == "application/json"
        assert "cookie" not in forwarded.headers
        assert "x-forwarded-for" in forwarded.headers

    async def test_static_path_goes_to_assets_host(self, client, proxied):
        resp = await client.get("/ingest/static/array.js")
        assert resp.status_code == 200

        (forwarded,) = proxied
        assert forwarded.url.host == "us-assets.i.posthog.com"
        assert forwarded.url.path == "/static/array.js"

    async def test_upstream_cookies_not_returned(self, client, proxied):
        resp = await client.get("/ingest/decide/")
        assert resp.headers["x-upstream"] == "posthog"
        assert "set-cookie" not in resp.headers

    async def test_configured_host(self, client, settings, proxied):
        settings.posthog_host = "https://eu.i.posthog.com"
        await client.get("/ingest/flags")
        assert proxied[0].url.host == "eu.i.posthog.com"

    async def test_upstream_unreachable(self, client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        mock_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app.dependency_overrides[get_ingest_client] = lambda: mock_client
        resp = await client.get("/ingest/decide/")
        await mock_client.aclose()
        assert resp.status_code == 502
