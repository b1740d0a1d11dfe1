"""Discord webhook alerts for pipeline failures.

Sends structured alerts to a Discord channel via the webhook URL configured
in DISCORD_WEBHOOK_URL. Used when a queue message is dead-lettered.

Failures to deliver an alert are logged and never raised into the caller.
"""

import os

import httpx

from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

ALERT_COLORS = {
    "CRITICAL": 0xFF0000,
    "WARNING": 0xFFA500,
    "INFO": 0x0000FF,
}


def build_alert_payload(
    level: str, message: str, details: dict[str, str] | None = None
) -> dict:
    """Build the Discord embed body (message capped at Discord's 2000 chars)."""
    text = message[:2000]
    return {
        "content": f"**{level}**: {text}",
        "embeds": [
            {
                "title": f"{level} Alert",
                "description": text,
                "fields": [
                    {"name": key, "value": str(value)[:1024], "inline": True}
                    for key, value in (details or {}).items()
                ],
                "color": ALERT_COLORS.get(level, 0x808080),
            }
        ],
    }


async def send_alert(
    level: str,
    message: str,
    details: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Send alert to Discord webhook.

    Args:
        level: Alert level ("CRITICAL", "WARNING", "INFO")
        message: Alert message (truncated to 2000 chars)
        details: Optional fields rendered in the embed
        transport: Optional httpx transport (tests)

    Returns:
        True if Discord accepted the alert.
    """
    webhook_url = os.getenv("DISCORD_WEBHOOK_URL")
    if not webhook_url:
        log.warning("discord_webhook_not_configured", level=level)
        return False

    payload = build_alert_payload(level, message, details)

    try:
        async with httpx.AsyncClient(transport=transport, timeout=5.0) as client:
            response = await client.post(webhook_url, json=payload)
            response.raise_for_status()
    except httpx.TimeoutException:
        log.error("discord_webhook_timeout", webhook_url=webhook_url[:50])
        return False
    except httpx.HTTPStatusError as e:
        log.error(
            "discord_webhook_http_error",
            status_code=e.response.status_code,
            response=e.response.text[:500],
        )
        return False
    except httpx.HTTPError as e:
        log.error("discord_webhook_failed", error=str(e))
        return False

    log.info("discord_alert_sent", level=level, message=message[:100])
    return True
