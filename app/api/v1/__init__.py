"""
API v1 Router

Machine-facing endpoints: identity-provider webhooks and the analytics proxy.
"""

from fastapi import APIRouter
from . import ingest, webhooks

router = APIRouter()

router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
router.include_router(ingest.router, prefix="/ingest", tags=["Ingest"])
