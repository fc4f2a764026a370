"""
Product analytics sink.

The reconciler talks to an ``AnalyticsSink`` rather than to the PostHog client
directly. One sink is built per process; webhook requests flush it before
returning and the app shuts it down on exit.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional, Protocol

import structlog
from posthog import Posthog

from app.core.config import get_settings

log = structlog.get_logger()


class AnalyticsSink(Protocol):
    def identify(self, distinct_id: str, properties: dict[str, Any]) -> None: ...

    def capture(
        self,
        event: str,
        distinct_id: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> None: ...

    def group_identify(
        self,
        group_type: str,
        group_key: str,
        distinct_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None: ...

    def flush(self) -> None: ...

    def shutdown(self) -> None: ...


class PostHogSink:
    """Forwards analytics calls to a PostHog client."""

    def __init__(self, client: Posthog):
        self.client = client

    def identify(self, distinct_id: str, properties: dict[str, Any]) -> None:
        self.client.identify(distinct_id=distinct_id, properties=properties)

    def capture(
        self,
        event: str,
        distinct_id: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        self.client.capture(distinct_id=distinct_id, event=event, properties=properties)

    def group_identify(
        self,
        group_type: str,
        group_key: str,
        distinct_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        self.client.group_identify(
            group_type=group_type,
            group_key=group_key,
            properties=properties,
            distinct_id=distinct_id,
        )

    def flush(self) -> None:
        self.client.flush()

    def shutdown(self) -> None:
        self.client.shutdown()


class NullAnalyticsSink:
    """Used when no PostHog key is configured. Drops everything."""

    def identify(self, distinct_id: str, properties: dict[str, Any]) -> None:
        pass

    def capture(
        self,
        event: str,
        distinct_id: str,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        pass

    def group_identify(
        self,
        group_type: str,
        group_key: str,
        distinct_id: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> None:
        pass

    def flush(self) -> None:
        pass

    def shutdown(self) -> None:
        pass


@lru_cache
def get_analytics() -> AnalyticsSink:
    """Process-wide analytics sink (FastAPI dependency)."""
    settings = get_settings()
    if not settings.posthog_api_key:
        log.info("analytics.disabled", reason="posthog_api_key not set")
        return NullAnalyticsSink()
    client = Posthog(settings.posthog_api_key, host=settings.posthog_host)
    return PostHogSink(client)
