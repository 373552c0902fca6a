"""
Tests for application and adapter configuration.
"""

import pytest
from pydantic import ValidationError

from booking_engine.config import Settings, get_settings
from booking_engine.conversation.config import ConversationConfig, ConversationProviderType
from booking_engine.messaging.config import MessagingConfig, MessagingProviderType


class TestSettings:
    def test_default_values(self) -> None:
        # Settings extends BaseSettings: environment variables may override defaults.
        # Validate the declared defaults on the model fields instead.
        fields = Settings.model_fields
        assert fields["business_timezone"].default == "America/Sao_Paulo"
        assert fields["retry_cooldown_hours"].default == 2.0
        assert fields["retry_failed_backoff_minutes"].default == 30
        assert fields["default_max_attempts"].default == 3
        assert fields["scarcity_default_cutoff_days"].default == 7
        assert fields["scheduler_enabled"].default is False

    def test_business_days_list(self) -> None:
        settings = Settings(business_days="4, 0,2,,0")
        assert settings.business_days_list == [0, 2, 4]

    def test_business_days_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            Settings(business_days="0,7")

    def test_hours_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Settings(business_hours_end=25)
        with pytest.raises(ValidationError):
            Settings(operation_timeout_seconds=0)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RETRY_COOLDOWN_HOURS", "4")
        monkeypatch.setenv("SCHEDULER_ENABLED", "true")

        settings = get_settings()

        assert settings.retry_cooldown_hours == 4.0
        assert settings.scheduler_enabled is True


class TestAdapterConfig:
    def test_conversation_defaults_to_mock(self) -> None:
        assert ConversationConfig.model_fields["provider_type"].default == ConversationProviderType.MOCK

    def test_conversation_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONVERSATION_PROVIDER_TYPE", "retell")
        monkeypatch.setenv("CONVERSATION_API_KEY", "key_123")

        config = ConversationConfig()

        assert config.provider_type == ConversationProviderType.RETELL
        assert config.api_key == "key_123"

    def test_messaging_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MESSAGING_PROVIDER_TYPE", "whatsapp")
        monkeypatch.setenv("MESSAGING_GRAPH_API_VERSION", "v25.0")

        config = MessagingConfig()

        assert config.provider_type == MessagingProviderType.WHATSAPP
        assert config.graph_api_version == "v25.0"

    def test_timeout_bounds(self) -> None:
        with pytest.raises(ValidationError):
            MessagingConfig(timeout_seconds=0)
        with pytest.raises(ValidationError):
            ConversationConfig(timeout_seconds=301)
