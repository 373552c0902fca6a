"""
Messaging gateway configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MessagingProviderType(str, Enum):
    """Supported messaging providers."""

    WHATSAPP = "whatsapp"
    MOCK = "mock"


class MessagingConfig(BaseSettings):
    """Messaging configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="MESSAGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider_type: MessagingProviderType = Field(default=MessagingProviderType.MOCK)

    # WhatsApp Cloud API; per-account credentials live on the business account.
    graph_base_url: str = Field(default="https://graph.facebook.com")
    graph_api_version: str = Field(default="v24.0")

    # Plain-text fallback through a Twilio messaging service
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_messaging_service_sid: str = Field(default="")
    twilio_api_base_url: str = Field(default="https://api.twilio.com")

    timeout_seconds: float = Field(default=30.0, gt=0, le=300)


def get_messaging_config() -> MessagingConfig:
    """Load messaging configuration from environment."""
    return MessagingConfig()
