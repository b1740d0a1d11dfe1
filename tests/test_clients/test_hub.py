"""Tests for the PubSubHubbub client (httpx MockTransport, no network)."""

from urllib.parse import parse_qs

import httpx
import pytest
from tenacity import wait_exponential, wait_none
from tenacity.wait import wait_base

from video_notifier.clients.hub import HubClient, topic_url
from video_notifier.exceptions import HubError

HUB_URL = "https://hub.example.com/subscribe"
CALLBACK_URL = "https://notify.example.com/api/youtube/webhook"


def _client(handler, **kwargs) -> HubClient:
    return HubClient(
        hub_url=HUB_URL,
        callback_url=CALLBACK_URL,
        transport=httpx.MockTransport(handler),
        retry_wait=wait_none(),
        **kwargs,
    )


class TestHubClient:
    @pytest.mark.asyncio
    async def test_subscribe_sends_form(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202)

        hub = _client(handler, secret="s3cret")
        await hub.subscribe("UC123")
        await hub.close()

        assert len(requests) == 1
        assert str(requests[0].url) == HUB_URL
        form = parse_qs(requests[0].content.decode())
        assert form["hub.mode"] == ["subscribe"]
        assert form["hub.callback"] == [CALLBACK_URL]
        assert form["hub.topic"] == [topic_url("UC123")]
        assert form["hub.verify"] == ["async"]
        assert form["hub.secret"] == ["s3cret"]

    @pytest.mark.asyncio
    async def test_unsubscribe_mode(self):
        modes = []

        def handler(request: httpx.Request) -> httpx.Response:
            modes.append(parse_qs(request.content.decode())["hub.mode"][0])
            return httpx.Response(204)

        await _client(handler).unsubscribe("UC123")
        assert modes == ["unsubscribe"]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, text="bad topic")

        with pytest.raises(HubError) as exc_info:
            await _client(handler).subscribe("UC123")

        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_until_success(self):
        responses = iter([httpx.Response(503), httpx.Response(429), httpx.Response(202)])

        def handler(request: httpx.Request) -> httpx.Response:
            return next(responses)

        await _client(handler).subscribe("UC123")

    @pytest.mark.asyncio
    async def test_persistent_server_error_raises_after_attempts(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(HubError) as exc_info:
            await _client(handler, max_attempts=3).subscribe("UC123")

        assert exc_info.value.status_code == 500
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_network_error_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(202)

        await _client(handler).subscribe("UC123")
        assert len(calls) == 2

    def test_default_retry_wait_is_exponential_backoff(self):
        hub = HubClient(hub_url=HUB_URL, callback_url=CALLBACK_URL)

        assert isinstance(hub.retry_wait, wait_base)
        assert isinstance(hub.retry_wait, wait_exponential)


def test_topic_url():
    assert topic_url("UCabc") == "https://www.youtube.com/xml/feeds/videos.xml?channel_id=UCabc"
