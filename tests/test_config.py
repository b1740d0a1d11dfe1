"""Tests for environment-driven configuration."""

import pytest

from video_notifier import config


class TestDatabaseUrl:
    def setup_method(self):
        config.get_database_url.cache_clear()

    def teardown_method(self):
        config.get_database_url.cache_clear()

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValueError, match="DATABASE_URL"):
            config.get_database_url()

    def test_postgresql_scheme_gets_asyncpg_driver(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@db:5432/app")
        assert config.get_database_url() == "postgresql+asyncpg://user:pw@db:5432/app"


class TestTunables:
    def test_defaults(self, monkeypatch):
        for name in (
            "QUEUE_NAME",
            "QUEUE_MAX_ATTEMPTS",
            "EMAIL_POLL_INTERVAL_SECONDS",
            "EMAIL_BATCH_SIZE",
        ):
            monkeypatch.delenv(name, raising=False)

        assert config.get_queue_name() == "youtube_data_queue"
        assert config.get_queue_max_attempts() == 5
        assert config.get_email_poll_interval() == 20.0
        assert config.get_email_batch_size() == 10

    def test_values_are_clamped(self, monkeypatch):
        monkeypatch.setenv("EMAIL_BATCH_SIZE", "5000")
        monkeypatch.setenv("QUEUE_POLL_INTERVAL_SECONDS", "0")
        assert config.get_email_batch_size() == 100
        assert config.get_queue_poll_interval() == 0.1

    def test_unparseable_value_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("QUEUE_MAX_ATTEMPTS", "many")
        assert config.get_queue_max_attempts() == 5


class TestEnvironmentGates:
    def test_subscription_check_runs_only_in_production_by_default(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "development")
        assert config.is_subscription_check_enabled() is False

        monkeypatch.setenv("APP_ENV", "Production")
        assert config.is_subscription_check_enabled() is True

    def test_explicit_flag_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("SUBSCRIPTION_CHECK_ENABLED", "false")
        monkeypatch.setenv("HUB_RENEWAL_ENABLED", "false")
        assert config.is_subscription_check_enabled() is False
        assert config.is_hub_renewal_enabled() is False

    def test_autostart_workers_parsed(self, monkeypatch):
        monkeypatch.setenv("WORKERS_AUTOSTART", " queue, email ,,")
        assert config.get_autostart_workers() == ["queue", "email"]

    def test_hub_callback_defaults_to_app_url(self, monkeypatch):
        monkeypatch.delenv("PUBSUB_CALLBACK_URL", raising=False)
        monkeypatch.setenv("APP_URL", "https://notify.example.com/")
        assert config.get_hub_callback_url() == "https://notify.example.com/api/youtube/webhook"
