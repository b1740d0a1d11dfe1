"""Tests for Discord webhook alerts.

Tests cover:
    - send_alert: Discord webhook integration
    - Message truncation (2000 char limit)
    - Graceful degradation (log on failure, never raise)
"""

import json

import httpx
import pytest

from video_notifier.utils.alerts import build_alert_payload, send_alert

WEBHOOK_URL = "https://discord.com/api/webhooks/test/webhook"


@pytest.fixture
def mock_webhook_url(monkeypatch):
    """Mock DISCORD_WEBHOOK_URL environment variable."""
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", WEBHOOK_URL)
    return WEBHOOK_URL


class TestBuildAlertPayload:
    def test_critical_payload(self):
        payload = build_alert_payload(
            "CRITICAL", "Message dead-lettered", {"msg_id": "7", "video_id": "abc"}
        )

        assert payload["content"] == "**CRITICAL**: Message dead-lettered"
        embed = payload["embeds"][0]
        assert embed["color"] == 0xFF0000
        assert {field["name"] for field in embed["fields"]} == {"msg_id", "video_id"}

    def test_message_truncated(self):
        payload = build_alert_payload("WARNING", "x" * 5000)
        assert len(payload["embeds"][0]["description"]) == 2000

    def test_unknown_level_gets_grey(self):
        assert build_alert_payload("DEBUG", "m")["embeds"][0]["color"] == 0x808080


class TestSendAlert:
    @pytest.mark.asyncio
    async def test_not_configured_returns_false(self):
        assert await send_alert("CRITICAL", "nobody listening") is False

    @pytest.mark.asyncio
    async def test_posts_payload(self, mock_webhook_url):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        sent = await send_alert(
            "CRITICAL",
            "Notification message 1 dead-lettered",
            details={"msg_id": "1"},
            transport=httpx.MockTransport(handler),
        )

        assert sent is True
        assert str(requests[0].url) == mock_webhook_url
        body = json.loads(requests[0].content)
        assert "dead-lettered" in body["content"]

    @pytest.mark.asyncio
    async def test_http_error_is_swallowed(self, mock_webhook_url):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="oops"))
        assert await send_alert("CRITICAL", "m", transport=transport) is False

    @pytest.mark.asyncio
    async def test_timeout_is_swallowed(self, mock_webhook_url):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert await send_alert("CRITICAL", "m", transport=httpx.MockTransport(handler)) is False
