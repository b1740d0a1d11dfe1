"""PubSubHubbub client for YouTube channel feed subscriptions.

The hub pushes Atom notifications for a channel's feed to our callback URL
for as long as the lease lasts (YouTube defaults to about 5 days). The hub
renewal worker re-subscribes followed channels; the queue worker
unsubscribes channels nobody follows any more.

Hub semantics:
    - Form-encoded POST with hub.callback, hub.topic, hub.mode, hub.verify
    - 202 Accepted (async verification) or 204 No Content on success
    - 4xx is a permanent rejection; 429, 5xx and network errors are retried
"""

from typing import Literal

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from video_notifier.config import get_external_call_timeout, get_hub_callback_url, get_hub_url
from video_notifier.exceptions import HubError
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

HubMode = Literal["subscribe", "unsubscribe"]

SUCCESS_STATUS_CODES = (202, 204)
RETRIABLE_STATUS_CODES = (429, 500, 502, 503, 504)


def topic_url(channel_id: str) -> str:
    return f"https://www.youtube.com/xml/feeds/videos.xml?channel_id={channel_id}"


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, HubError):
        return exc.status_code in RETRIABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


class HubClient:
    """Subscribe/unsubscribe YouTube channel feeds at the hub.

    Usage:
        hub = HubClient()
        await hub.subscribe("UCxxxxxxxxxxxxxxxxxxxxxx")
    """

    def __init__(
        self,
        hub_url: str | None = None,
        callback_url: str | None = None,
        secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        max_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ):
        self.hub_url = hub_url or get_hub_url()
        self.callback_url = callback_url or get_hub_callback_url()
        self.secret = secret
        self.client = httpx.AsyncClient(
            transport=transport,
            timeout=timeout if timeout is not None else get_external_call_timeout(),
        )
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    async def subscribe(self, channel_id: str) -> None:
        await self._request(channel_id, "subscribe")

    async def unsubscribe(self, channel_id: str) -> None:
        await self._request(channel_id, "unsubscribe")

    async def _request(self, channel_id: str, mode: HubMode) -> None:
        """Send one hub request, retrying transient failures.

        Raises:
            HubError: Hub rejected the request, or it kept failing.
            httpx.TransportError: Network failure after all attempts.
        """
        form = {
            "hub.callback": self.callback_url,
            "hub.topic": topic_url(channel_id),
            "hub.verify": "async",
            "hub.mode": mode,
        }
        if self.secret:
            form["hub.secret"] = self.secret

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_should_retry),
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            reraise=True,
        ):
            with attempt:
                response = await self.client.post(self.hub_url, data=form)
                if response.status_code not in SUCCESS_STATUS_CODES:
                    raise HubError(
                        f"Hub {mode} failed for {channel_id}: "
                        f"{response.status_code} {response.text[:200]}",
                        status_code=response.status_code,
                    )

        log.info("hub_request_accepted", mode=mode, channel_id=channel_id)

    async def close(self) -> None:
        await self.client.aclose()
