"""
Analytics telemetry reverse proxy.

Browser analytics SDKs send to our own origin under /ingest so requests are
not dropped by tracking blockers.

GET|POST /ingest/static/{path}  Proxied to the PostHog assets host
GET|POST /ingest/{path}         Proxied to the PostHog API host
"""

from __future__ import annotations

from functools import lru_cache

import httpx
import structlog
from fastapi import APIRouter, Depends, Request
from starlette.responses import PlainTextResponse, Response

from app.core.config import Settings, get_settings

log = structlog.get_logger()

router = APIRouter()

INGEST_TIMEOUT_SECONDS = 10.0

# Request headers passed upstream; everything else (cookies, auth) stays here
FORWARDED_REQUEST_HEADERS = ("content-type", "user-agent", "accept", "accept-language", "origin")

# Response headers not copied back; httpx has already decoded the body
DROPPED_RESPONSE_HEADERS = {
    "connection",
    "content-encoding",
    "content-length",
    "keep-alive",
    "transfer-encoding",
    "set-cookie",
}


@lru_cache
def get_ingest_client() -> httpx.AsyncClient:
    """Shared upstream client (FastAPI dependency). Closed on app shutdown."""
    return httpx.AsyncClient(timeout=INGEST_TIMEOUT_SECONDS)


async def close_ingest_client() -> None:
    if get_ingest_client.cache_info().currsize:
        await get_ingest_client().aclose()
        get_ingest_client.cache_clear()


async def _forward(request: Request, target: str, client: httpx.AsyncClient) -> Response:
    headers = {
        name: request.headers[name]
        for name in FORWARDED_REQUEST_HEADERS
        if name in request.headers
    }
    if request.client is not None:
        headers["x-forwarded-for"] = request.client.host

    try:
        upstream = await client.request(
            request.method,
            target,
            params=list(request.query_params.multi_items()),
            content=await request.body(),
            headers=headers,
        )
    except httpx.HTTPError as exc:
        log.warning("ingest.upstream_failed", target=target, error=str(exc))
        return PlainTextResponse("Bad gateway", status_code=502)

    response_headers = {
        name: value
        for name, value in upstream.headers.items()
        if name.lower() not in DROPPED_RESPONSE_HEADERS
    }
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=response_headers,
    )


@router.api_route("/static/{path:path}", methods=["GET", "POST"], tags=["Ingest"])
async def proxy_static(
    path: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_ingest_client),
):
    """Proxy analytics SDK assets."""
    target = f"{settings.posthog_assets_host.rstrip('/')}/static/{path}"
    return await _forward(request, target, client)


@router.api_route("/{path:path}", methods=["GET", "POST"], tags=["Ingest"])
async def proxy_api(
    path: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_ingest_client),
):
    """Proxy analytics capture/decide calls. Trailing slashes are preserved."""
    target = f"{settings.posthog_host.rstrip('/')}/{path}"
    return await _forward(request, target, client)
