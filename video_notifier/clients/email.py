"""Transactional email delivery via Resend.

Every send carries an idempotency key derived from the ledger row, so a
retried send of the same notification (e.g., after the status update that
followed a successful send was lost) is collapsed by the provider instead of
reaching the subscriber twice.
"""

import asyncio
from typing import Any

import resend
from resend.exceptions import ResendError

from video_notifier.config import (
    get_email_from_address,
    get_external_call_timeout,
    get_resend_api_key,
)
from video_notifier.exceptions import ConfigurationError, EmailDeliveryError
from video_notifier.utils.logging import get_logger

log = get_logger(__name__)


class ResendEmailSender:
    """Async facade over the synchronous Resend SDK.

    Usage:
        sender = ResendEmailSender()
        email_id = await sender.send(
            to="someone@example.com",
            subject="New Video: Title",
            html=html_body,
            text=text_body,
            idempotency_key="email-notification/<profile>/<video>",
        )
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_address: str | None = None,
        timeout: float | None = None,
    ):
        api_key = api_key or get_resend_api_key()
        if not api_key:
            raise ConfigurationError("RESEND_API_KEY environment variable is required")
        resend.api_key = api_key
        self.from_address = from_address or get_email_from_address()
        self.timeout = timeout if timeout is not None else get_external_call_timeout()

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str,
        idempotency_key: str,
    ) -> str | None:
        """Send one email and return the provider's message id.

        Raises:
            EmailDeliveryError: Provider rejected the message, the request
                failed, or it exceeded the timeout.
        """
        params: dict[str, Any] = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
        }

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    resend.Emails.send, params, {"idempotency_key": idempotency_key}
                ),
                timeout=self.timeout,
            )
        except TimeoutError as e:
            raise EmailDeliveryError(f"Email provider timed out after {self.timeout}s") from e
        except (ResendError, OSError) as e:
            raise EmailDeliveryError(str(e) or type(e).__name__) from e

        email_id = response.get("id") if isinstance(response, dict) else None
        log.info("email_sent", email_id=email_id, idempotency_key=idempotency_key)
        return email_id
