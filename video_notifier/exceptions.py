"""Shared exceptions for the application.

This module contains exception classes used across workers, clients and
services to avoid cross-module dependencies between them.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from video_notifier.models import NotificationStatus


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    This error indicates a configuration problem that prevents a client from
    being built (e.g., RESEND_API_KEY or OPENAI_API_KEY not set).
    """

    pass


class InvalidStateTransitionError(Exception):
    """Raised when a notification status change violates the delivery state machine.

    Ledger rows only ever move pending → sent or pending → failed. Both sent
    and failed are terminal.

    Attributes:
        from_status: The current NotificationStatus before the attempted transition.
        to_status: The NotificationStatus that was attempted but is not valid.

    Example:
        >>> notification.status = NotificationStatus.SENT
        >>> notification.status = NotificationStatus.PENDING
        InvalidStateTransitionError: Invalid transition: sent → pending
    """

    def __init__(
        self,
        message: str,
        from_status: "NotificationStatus",
        to_status: "NotificationStatus",
    ):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)

    def __str__(self) -> str:
        base_message = super().__str__()
        return f"{base_message} (from={self.from_status.value}, to={self.to_status.value})"


class SummarizationError(Exception):
    """Raised when the summarizer returns no usable summary.

    Treated as transient by the queue worker: the message is released for
    redelivery and eventually dead-lettered.
    """

    def __init__(self, message: str, video_id: str):
        self.video_id = video_id
        super().__init__(f"{message} (video_id={video_id})")


class HubError(Exception):
    """Raised when the PubSubHubbub hub rejects a subscribe/unsubscribe request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class UnknownWorkerError(KeyError):
    """Raised when a control command names a worker that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown worker: {self.name}"


class EmailDeliveryError(Exception):
    """Raised when the email provider does not accept a message.

    The email worker records the message as the ledger row's failure_reason.
    """

    pass
