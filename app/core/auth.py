"""
Session tokens issued by the identity provider.

Only reads them: the provider signs the session JWT and we verify it with the
configured key (PEM public key for RS256, shared secret for HS*).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt
import structlog
from starlette.requests import HTTPConnection

from app.core.config import Settings

log = structlog.get_logger()


@dataclass(frozen=True)
class SessionClaims:
    """Signed-in user and their active organization, if any."""
    user_id: str
    org_id: Optional[str] = None


def decode_session_token(token: str, settings: Settings) -> dict:
    """Decode and verify a session JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token,
        settings.session_jwt_key,
        algorithms=settings.session_jwt_algorithms,
        options={"verify_aud": False},
    )


def _claims_from_payload(payload: dict) -> Optional[SessionClaims]:
    user_id = payload.get("sub")
    if not user_id:
        return None
    # v1 tokens carry "org_id"; v2 tokens nest the org under "o"
    org_id = payload.get("org_id")
    if not org_id and isinstance(payload.get("o"), dict):
        org_id = payload["o"].get("id")
    return SessionClaims(user_id=user_id, org_id=org_id or None)


def _extract_token(conn: HTTPConnection, settings: Settings) -> Optional[str]:
    token = conn.cookies.get(settings.session_cookie_name)
    if token:
        return token
    auth_header = conn.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def get_session_claims(conn: HTTPConnection, settings: Settings) -> Optional[SessionClaims]:
    """Return the caller's session claims, or None when signed out.

    A missing or invalid token, or no configured verification key, means signed out.
    """
    if not settings.session_jwt_key:
        return None
    token = _extract_token(conn, settings)
    if not token:
        return None
    try:
        payload = decode_session_token(token, settings)
    except jwt.PyJWTError as exc:
        log.debug("session.invalid_token", error=str(exc))
        return None
    return _claims_from_payload(payload)
