"""Tests for configuration settings."""
import pytest
from pydantic import ValidationError

from eduflow.config.settings import Settings, get_settings, reset_settings


class TestSettings:
    """Test Settings configuration."""

    def test_settings_default_values(self):
        settings = Settings()

        # env and backend come from conftest
        assert settings.env == "test"
        assert settings.store_backend == "memory"
        assert settings.log_level == "INFO"
        assert settings.redis_url == "redis://localhost:6379/1"

        assert settings.node_timeout_s is None
        assert settings.http_timeout_s == 30.0
        assert settings.event_timeout_s == 5.0
        assert settings.max_delay_seconds == 300
        assert settings.openai_api_key is None
        assert settings.dashboard_channel == "eduflow:dashboard"

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("EDUFLOW_NODE_TIMEOUT_S", "2.5")
        monkeypatch.setenv("EDUFLOW_OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("EDUFLOW_LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.node_timeout_s == 2.5
        assert settings.openai_api_key.get_secret_value() == "sk-test"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("field", ["http_timeout_s", "event_timeout_s", "node_timeout_s"])
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_invalid_store_backend(self):
        with pytest.raises(ValidationError):
            Settings(store_backend="postgres")


class TestGetSettings:

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_reset_settings(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("EDUFLOW_MAX_DELAY_SECONDS", "10")
        reset_settings()

        second = get_settings()

        assert second is not first
        assert second.max_delay_seconds == 10
