"""
orgsync API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from app.core.analytics import get_analytics
from app.core.config import get_settings
from app.core.database import get_session
from app.core.logging import configure_logging
from app.core.middleware import OnboardingRedirectMiddleware, SecurityHeadersMiddleware
from app.api.v1 import router as api_v1_router
from app.api.v1.ingest import close_ingest_client

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="orgsync",
        description="Mirrors identity-provider users and organizations into the local database.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (last added runs outermost)
    app.add_middleware(OnboardingRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(api_v1_router)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check(session: AsyncSession = Depends(get_session)):
        """Readiness check endpoint: verifies the database answers."""
        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            log.warning("readiness.database_unavailable", error=str(exc))
            return JSONResponse({"status": "unavailable"}, status_code=503)
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("orgsync starting", webhooks_configured=bool(settings.webhook_secret))

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("orgsync shutting down")
        get_analytics().shutdown()
        await close_ingest_client()

    return app


app = create_app()
