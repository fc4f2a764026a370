"""
Identity-provider webhook endpoint.

POST /webhooks/auth  Verify a svix-signed event and reconcile it into the database
"""

from __future__ import annotations

import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, PlainTextResponse, Response
from svix.webhooks import Webhook, WebhookVerificationError

from app.core.analytics import AnalyticsSink, get_analytics
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.services.identity_sync import dispatch_event
from orgsync_shared.schemas.identity_events import parse_identity_event

log = structlog.get_logger()

router = APIRouter()


@router.post("/auth", tags=["Webhooks"])
async def receive_auth_webhook(
    request: Request,
    svix_id: Optional[str] = Header(None, alias="svix-id"),
    svix_timestamp: Optional[str] = Header(None, alias="svix-timestamp"),
    svix_signature: Optional[str] = Header(None, alias="svix-signature"),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session),
    analytics: AnalyticsSink = Depends(get_analytics),
) -> Response:
    """Receive an identity-provider event and mirror it locally."""
    if not settings.webhook_secret:
        return JSONResponse({"message": "Not configured", "ok": False})

    if not (svix_id and svix_timestamp and svix_signature):
        return PlainTextResponse("Error occurred -- no svix headers", status_code=400)

    body = await request.body()

    try:
        raw = body.decode("utf-8")
        Webhook(settings.webhook_secret).verify(
            raw,
            {
                "svix-id": svix_id,
                "svix-timestamp": svix_timestamp,
                "svix-signature": svix_signature,
            },
        )
        payload = json.loads(raw)
    except (WebhookVerificationError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.error("webhook.verification_failed", svix_id=svix_id, error=str(exc))
        return PlainTextResponse("Error occurred", status_code=400)

    if not isinstance(payload, dict):
        return PlainTextResponse("Invalid payload", status_code=400)

    try:
        event = parse_identity_event(payload)
    except ValidationError as exc:
        log.error(
            "webhook.invalid_payload",
            svix_id=svix_id,
            event_type=payload.get("type"),
            error=str(exc),
        )
        return PlainTextResponse("Invalid payload", status_code=400)

    data = payload.get("data")
    log.info(
        "webhook.received",
        id=data.get("id") if isinstance(data, dict) else None,
        event_type=event.type,
        body=raw,
    )

    try:
        outcome = await dispatch_event(event, session, analytics)
    finally:
        # Flush before returning
        await run_in_threadpool(analytics.flush)

    log.info(
        "webhook.handled",
        event_type=event.type,
        status=outcome.status_code,
        ok=outcome.ok,
    )
    return PlainTextResponse(outcome.message, status_code=outcome.status_code)
