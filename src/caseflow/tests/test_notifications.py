"""
Tests for side-effect delivery.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from caseflow.config import settings
from caseflow.notifications import (
    LoggingNotifier,
    NotificationError,
    WebhookNotifier,
    build_notifier,
    dispatch_required_action,
)


def _webhook(handler) -> WebhookNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookNotifier("https://hooks.example.com/caseflow", client=client)


class TestWebhookNotifier:
    """Tests for WebhookNotifier."""

    @pytest.mark.asyncio
    async def test_posts_payload(self, overstay_case):
        """The action and case identity are posted as JSON."""
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        notifier = _webhook(handler)
        await notifier.notify("email_submission", overstay_case)
        await notifier.close()

        assert len(received) == 1
        assert received[0]["action"] == "email_submission"
        assert received[0]["case_reference"] == "OA-2026-00001"
        assert received[0]["case_type"] == "overstay_appeal"
        assert received[0]["client_email"] == "thandi@example.com"

    @pytest.mark.asyncio
    async def test_http_error_raises(self, overstay_case):
        """Non-2xx responses become NotificationError."""
        notifier = _webhook(lambda request: httpx.Response(502))

        with pytest.raises(NotificationError, match="HTTP 502"):
            await notifier.notify("email_submission", overstay_case)

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, overstay_case):
        """Transport failures become NotificationError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        notifier = _webhook(handler)

        with pytest.raises(NotificationError, match="request failed"):
            await notifier.notify("email_submission", overstay_case)


class TestDispatchRequiredAction:
    """Tests for dispatch_required_action."""

    @pytest.mark.asyncio
    async def test_nothing_to_deliver(self, overstay_case):
        """No action means nothing is sent."""
        notifier = AsyncMock()

        assert await dispatch_required_action(notifier, None, overstay_case) is True
        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, overstay_case):
        """A failed delivery does not raise."""
        notifier = AsyncMock()
        notifier.notify.side_effect = NotificationError("webhook down")

        assert await dispatch_required_action(notifier, "email_submission", overstay_case) is False

    @pytest.mark.asyncio
    async def test_logging_notifier(self, section_8_case):
        """The default notifier always succeeds."""
        assert await dispatch_required_action(LoggingNotifier(), "vfs_submission", section_8_case) is True


class TestBuildNotifier:
    @pytest.mark.asyncio
    async def test_webhook_when_configured(self, monkeypatch):
        """A configured URL selects the webhook notifier."""
        monkeypatch.setattr(settings, "notification_webhook_url", "https://hooks.example.com/x")
        notifier = build_notifier()

        assert isinstance(notifier, WebhookNotifier)
        await notifier.close()

    def test_logging_by_default(self, monkeypatch):
        """Without a URL actions are logged."""
        monkeypatch.setattr(settings, "notification_webhook_url", None)
        assert isinstance(build_notifier(), LoggingNotifier)
