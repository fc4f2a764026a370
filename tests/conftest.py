"""
Shared fixtures: file-backed SQLite with foreign keys on, a recording analytics
sink, svix-signed webhook requests, and identity-provider payload builders.
"""

from __future__ import annotations

import base64
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from svix.webhooks import Webhook

import app.models  # noqa: F401
from app.core.analytics import get_analytics
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.main import app as fastapi_app

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"orgsync-test-signing-secret-0001").decode()


class RecordingAnalyticsSink:
    """Analytics sink that records every call instead of sending it."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.flushed = 0
        self.fail_identify = False

    def identify(self, distinct_id, properties):
        if self.fail_identify:
            raise RuntimeError("analytics unavailable")
        self.calls.append(("identify", distinct_id, properties))

    def capture(self, event, distinct_id, properties=None):
        self.calls.append(("capture", event, distinct_id))

    def group_identify(self, group_type, group_key, distinct_id=None, properties=None):
        if self.fail_identify:
            raise RuntimeError("analytics unavailable")
        self.calls.append(("group_identify", group_type, group_key, distinct_id, properties))

    def flush(self):
        self.flushed += 1

    def shutdown(self):
        pass

    def of(self, kind: str) -> list[tuple]:
        return [call[1:] for call in self.calls if call[0] == kind]


class EventFactory:
    """Builds identity-provider webhook payloads."""

    def user(
        self,
        type_: str = "user.created",
        clerk_id: str = "user_1",
        email: Optional[str] = "ada@example.com",
        first_name: Optional[str] = "Ada",
        last_name: Optional[str] = "Lovelace",
        phone: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> dict[str, Any]:
        return {
            "type": type_,
            "object": "event",
            "data": {
                "id": clerk_id,
                "object": "user",
                "email_addresses": [{"id": "idn_1", "email_address": email}] if email else [],
                "phone_numbers": [{"id": "idn_2", "phone_number": phone}] if phone else [],
                "first_name": first_name,
                "last_name": last_name,
                "image_url": image_url,
                "created_at": 1700000000000,
            },
        }

    def user_deleted(self, clerk_id: Optional[str] = "user_1") -> dict[str, Any]:
        data: dict[str, Any] = {"object": "user", "deleted": True}
        if clerk_id is not None:
            data["id"] = clerk_id
        return {"type": "user.deleted", "object": "event", "data": data}

    def organization(
        self,
        type_: str = "organization.created",
        clerk_id: str = "org_1",
        name: str = "Acme",
        created_by: Optional[str] = "user_1",
        image_url: Optional[str] = None,
    ) -> dict[str, Any]:
        return {
            "type": type_,
            "object": "event",
            "data": {
                "id": clerk_id,
                "object": "organization",
                "name": name,
                "slug": name.lower(),
                "image_url": image_url,
                "created_by": created_by,
            },
        }

    def membership(
        self,
        type_: str = "organizationMembership.created",
        user_id: str = "user_1",
        org_id: str = "org_1",
        role: Optional[str] = "org:admin",
    ) -> dict[str, Any]:
        return {
            "type": type_,
            "object": "event",
            "data": {
                "id": "orgmem_1",
                "object": "organization_membership",
                "role": role,
                "organization": {"id": org_id, "name": "Acme", "image_url": None},
                "public_user_data": {"user_id": user_id, "identifier": "ada@example.com"},
            },
        }


@pytest.fixture
def events() -> EventFactory:
    return EventFactory()


@pytest.fixture
def analytics() -> RecordingAnalyticsSink:
    return RecordingAnalyticsSink()


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orgsync_test.db'}")

    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
async def client(session_factory, settings, analytics):
    async def _session_override():
        async with session_factory() as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = _session_override
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    fastapi_app.dependency_overrides[get_analytics] = lambda: analytics
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


def sign_headers(body: str, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    msg_id = f"msg_{uuid.uuid4().hex}"
    now = datetime.now(timezone.utc)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, now, body),
        "content-type": "application/json",
    }


@pytest.fixture
def sign():
    """Signs a raw body; pass ``secret`` to sign with a different key."""
    return sign_headers


@pytest.fixture
def send_event(client):
    """POST a correctly signed payload. ``headers`` entries override (None removes)."""

    async def _send(payload: dict[str, Any], headers: Optional[dict[str, Optional[str]]] = None):
        body = json.dumps(payload)
        signed: dict[str, str] = sign_headers(body)
        for name, value in (headers or {}).items():
            if value is None:
                signed.pop(name, None)
            else:
                signed[name] = value
        return await client.post("/webhooks/auth", content=body, headers=signed)

    return _send
