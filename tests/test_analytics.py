"""
Analytics sink tests.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app.core.analytics import NullAnalyticsSink, PostHogSink, get_analytics
from app.core.config import get_settings


@pytest.fixture
def fresh_caches():
    get_settings.cache_clear()
    get_analytics.cache_clear()
    yield
    get_settings.cache_clear()
    get_analytics.cache_clear()


class TestPostHogSink:
    def test_calls_forwarded(self):
        client = MagicMock()
        sink = PostHogSink(client)

        sink.identify("user_1", {"email": "ada@example.com"})
        sink.capture("User Created", "user_1")
        sink.group_identify("company", "org_1", distinct_id="user_1", properties={"name": "Acme"})
        sink.flush()
        sink.shutdown()

        client.identify.assert_called_once_with(
            distinct_id="user_1", properties={"email": "ada@example.com"}
        )
        client.capture.assert_called_once_with(
            distinct_id="user_1", event="User Created", properties=None
        )
        client.group_identify.assert_called_once_with(
            group_type="company",
            group_key="org_1",
            properties={"name": "Acme"},
            distinct_id="user_1",
        )
        client.flush.assert_called_once_with()
        client.shutdown.assert_called_once_with()


class TestGetAnalytics:
    def test_null_sink_without_key(self, monkeypatch, fresh_caches):
        monkeypatch.delenv("ORGSYNC_POSTHOG_API_KEY", raising=False)
        monkeypatch.setattr(
            "app.core.analytics.get_settings",
            lambda: get_settings().model_copy(update={"posthog_api_key": None}),
        )
        assert isinstance(get_analytics(), NullAnalyticsSink)

    def test_posthog_sink_with_key(self, monkeypatch, fresh_caches):
        monkeypatch.setenv("ORGSYNC_POSTHOG_API_KEY", "phc_test")
        monkeypatch.setenv("ORGSYNC_POSTHOG_HOST", "https://eu.i.posthog.com")
        sink = get_analytics()
        assert isinstance(sink, PostHogSink)
        assert sink.client.api_key == "phc_test"
        assert sink.client.host == "https://eu.i.posthog.com"
        assert get_analytics() is sink

    def test_null_sink_is_silent(self):
        sink = NullAnalyticsSink()
        sink.identify("user_1", {})
        sink.capture("User Created", "user_1")
        sink.group_identify("company", "org_1")
        sink.flush()
        sink.shutdown()
