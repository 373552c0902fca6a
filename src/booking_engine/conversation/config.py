"""
Conversation engine configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConversationProviderType(str, Enum):
    """Supported conversation engine providers."""

    RETELL = "retell"
    MOCK = "mock"


class ConversationConfig(BaseSettings):
    """Conversation engine configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="CONVERSATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider_type: ConversationProviderType = Field(default=ConversationProviderType.MOCK)

    api_base_url: str = Field(default="https://api.retellai.com")
    api_key: str = Field(default="")
    from_number: str = Field(default="")

    timeout_seconds: float = Field(default=30.0, gt=0, le=300)


def get_conversation_config() -> ConversationConfig:
    """Load conversation engine configuration from environment."""
    return ConversationConfig()
