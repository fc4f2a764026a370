"""
Request middleware: security headers, onboarding redirect.
"""

from __future__ import annotations

import re
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from app.core.auth import get_session_claims
from app.core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https://img.clerk.com; "
        "connect-src 'self' https://us.i.posthog.com https://us-assets.i.posthog.com; "
        "frame-ancestors 'none';"
    ),
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Onboarding redirect
# ---------------------------------------------------------------------------

ONBOARDING_PATH = "/onboarding"

# Never redirected: static assets, telemetry proxy, onboarding itself, machine endpoints
PUBLIC_PREFIXES = (
    "/static",
    "/favicon",
    "/ingest",
    ONBOARDING_PATH,
    "/webhooks",
    "/health",
    "/ready",
)

STATIC_FILE_PATTERN = re.compile(
    r"\.(?:html?|css|js(?!on)|jpe?g|webp|png|gif|svg|ttf|woff2?|ico|csv|docx?|xlsx?|zip|webmanifest)$"
)


def is_public_path(path: str) -> bool:
    return path.startswith(PUBLIC_PREFIXES) or bool(STATIC_FILE_PATTERN.search(path))


class OnboardingRedirectMiddleware(BaseHTTPMiddleware):
    """
    Send signed-in users without an active organization to onboarding.

    Signed-out requests pass through; protecting routes is left to the
    endpoints themselves.
    """

    def __init__(self, app: ASGIApp, settings: Optional[Settings] = None):
        super().__init__(app)
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    async def dispatch(self, request: Request, call_next) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        claims = get_session_claims(request, self.settings)
        if claims is not None and not claims.org_id:
            url = request.url.replace(path=ONBOARDING_PATH, query="")
            return RedirectResponse(str(url), status_code=307)

        return await call_next(request)
