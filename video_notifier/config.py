"""Configuration management for the notification pipeline.

This module provides centralized configuration loading from environment variables.
Required values raise on access; tunables fall back to defaults and are clamped
to sane ranges.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required for production)
    APP_ENV: Deployment environment name (default: "development")
    RESEND_API_KEY: Resend API key for transactional email (required by EmailWorker)
    OPENAI_API_KEY: OpenAI API key for summaries (required by QueueWorker)

Usage:
    from video_notifier.config import get_queue_poll_interval, get_database_url

    interval = get_queue_poll_interval()  # 5.0 unless overridden
    db_url = get_database_url()  # Raises if DATABASE_URL not set
"""

import os
from functools import lru_cache

import structlog

log = structlog.get_logger(__name__)

# Pipeline defaults
DEFAULT_QUEUE_NAME = "youtube_data_queue"
DEFAULT_QUEUE_POLL_INTERVAL = 5.0
DEFAULT_QUEUE_VISIBILITY_TIMEOUT = 300
DEFAULT_QUEUE_MAX_ATTEMPTS = 5
DEFAULT_RETRY_BASE_DELAY = 30
DEFAULT_RETRY_MAX_DELAY = 3600
DEFAULT_EMAIL_POLL_INTERVAL = 20.0
DEFAULT_EMAIL_BATCH_SIZE = 10
DEFAULT_SUBSCRIPTION_CHECK_INTERVAL = 300.0
DEFAULT_HUB_RENEWAL_INTERVAL = 3600.0
DEFAULT_EXTERNAL_CALL_TIMEOUT = 60.0
DEFAULT_SUMMARY_MODEL = "gpt-4o-mini"
DEFAULT_EMAIL_FROM = "Flow Fusion Notifier <info@huudle.io>"
DEFAULT_HUB_URL = "https://pubsubhubbub.appspot.com/subscribe"


def _get_float(name: str, default: float, minimum: float, maximum: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return max(minimum, min(maximum, float(raw)))
    except ValueError:
        log.warning("invalid_config_value", name=name, value=raw, using_default=default)
        return default


def _get_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return max(minimum, min(maximum, int(raw)))
    except ValueError:
        log.warning("invalid_config_value", name=name, value=raw, using_default=default)
        return default


def _get_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_environment() -> str:
    """Get deployment environment name (APP_ENV, default "development")."""
    return os.getenv("APP_ENV", "development").strip().lower()


def is_production() -> bool:
    return get_environment() == "production"


def get_queue_name() -> str:
    return os.getenv("QUEUE_NAME", DEFAULT_QUEUE_NAME)


def get_queue_poll_interval() -> float:
    """Get QueueWorker poll interval in seconds.

    Environment Variable:
        QUEUE_POLL_INTERVAL_SECONDS: Delay between pops (default: 5, range 0.1-300)
    """
    return _get_float("QUEUE_POLL_INTERVAL_SECONDS", DEFAULT_QUEUE_POLL_INTERVAL, 0.1, 300.0)


def get_queue_visibility_timeout() -> int:
    """Get seconds a popped message stays hidden before it is redelivered.

    Environment Variable:
        QUEUE_VISIBILITY_TIMEOUT_SECONDS: Visibility timeout (default: 300, range 10-86400)
    """
    return _get_int(
        "QUEUE_VISIBILITY_TIMEOUT_SECONDS", DEFAULT_QUEUE_VISIBILITY_TIMEOUT, 10, 86400
    )


def get_queue_max_attempts() -> int:
    """Get delivery attempts allowed before a message is dead-lettered.

    Environment Variable:
        QUEUE_MAX_ATTEMPTS: Attempt cap (default: 5, range 1-50)
    """
    return _get_int("QUEUE_MAX_ATTEMPTS", DEFAULT_QUEUE_MAX_ATTEMPTS, 1, 50)


def get_retry_base_delay() -> int:
    return _get_int("QUEUE_RETRY_BASE_DELAY_SECONDS", DEFAULT_RETRY_BASE_DELAY, 1, 3600)


def get_retry_max_delay() -> int:
    return _get_int("QUEUE_RETRY_MAX_DELAY_SECONDS", DEFAULT_RETRY_MAX_DELAY, 1, 86400)


def get_email_poll_interval() -> float:
    """Get EmailWorker poll interval in seconds.

    Environment Variable:
        EMAIL_POLL_INTERVAL_SECONDS: Delay between batches (default: 20, range 1-600)
    """
    return _get_float("EMAIL_POLL_INTERVAL_SECONDS", DEFAULT_EMAIL_POLL_INTERVAL, 1.0, 600.0)


def get_email_batch_size() -> int:
    return _get_int("EMAIL_BATCH_SIZE", DEFAULT_EMAIL_BATCH_SIZE, 1, 100)


def get_subscription_check_interval() -> float:
    """Get SubscriptionCheckWorker interval in seconds.

    Environment Variable:
        SUBSCRIPTION_CHECK_INTERVAL_SECONDS: Sweep interval (default: 300, range 10-86400)
    """
    return _get_float(
        "SUBSCRIPTION_CHECK_INTERVAL_SECONDS",
        DEFAULT_SUBSCRIPTION_CHECK_INTERVAL,
        10.0,
        86400.0,
    )


def is_subscription_check_enabled() -> bool:
    """Whether the subscription sweep runs in this deployment.

    SUBSCRIPTION_CHECK_ENABLED overrides; otherwise only production runs it.
    """
    override = _get_bool("SUBSCRIPTION_CHECK_ENABLED")
    return is_production() if override is None else override


def get_hub_renewal_interval() -> float:
    return _get_float("HUB_RENEWAL_INTERVAL_SECONDS", DEFAULT_HUB_RENEWAL_INTERVAL, 60.0, 86400.0)


def is_hub_renewal_enabled() -> bool:
    override = _get_bool("HUB_RENEWAL_ENABLED")
    return is_production() if override is None else override


def get_external_call_timeout() -> float:
    """Get per-call timeout for caption, summary, hub and email calls.

    Environment Variable:
        EXTERNAL_CALL_TIMEOUT_SECONDS: Timeout (default: 60, range 1-600)
    """
    return _get_float("EXTERNAL_CALL_TIMEOUT_SECONDS", DEFAULT_EXTERNAL_CALL_TIMEOUT, 1.0, 600.0)


def get_resend_api_key() -> str | None:
    return os.getenv("RESEND_API_KEY")


def get_email_from_address() -> str:
    return os.getenv("EMAIL_FROM", DEFAULT_EMAIL_FROM)


def get_openai_api_key() -> str | None:
    return os.getenv("OPENAI_API_KEY")


def get_summary_model() -> str:
    return os.getenv("SUMMARY_MODEL", DEFAULT_SUMMARY_MODEL)


def get_hub_url() -> str:
    return os.getenv("PUBSUB_HUB_URL", DEFAULT_HUB_URL)


def get_app_url() -> str:
    """Public base URL used to build the hub callback (APP_URL)."""
    return os.getenv("APP_URL", "http://localhost:8000").rstrip("/")


def get_hub_callback_url() -> str:
    """Callback URL registered with the hub for YouTube feed notifications."""
    return os.getenv("PUBSUB_CALLBACK_URL") or f"{get_app_url()}/api/youtube/webhook"


def get_autostart_workers() -> list[str]:
    """Worker names started with the web app (comma-separated WORKERS_AUTOSTART)."""
    raw = os.getenv("WORKERS_AUTOSTART", "")
    return [name.strip() for name in raw.split(",") if name.strip()]
