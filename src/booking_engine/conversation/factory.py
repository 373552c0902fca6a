"""
Conversation engine factory.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from booking_engine.conversation.config import (
    ConversationConfig,
    ConversationProviderType,
    get_conversation_config,
)
from booking_engine.conversation.interface import ConversationEngine
from booking_engine.conversation.mock_adapter import MockConversationEngine
from booking_engine.conversation.retell_adapter import RetellAdapter

logger = logging.getLogger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


def create_conversation_engine(config: ConversationConfig) -> ConversationEngine:
    logger.info(
        "Conversation engine config resolved",
        extra={
            "provider_type": config.provider_type.value,
            "api_base_url": config.api_base_url,
            "api_key": _mask(config.api_key),
            "from_number": config.from_number,
        },
    )

    if config.provider_type == ConversationProviderType.RETELL:
        return RetellAdapter(config)

    if config.provider_type == ConversationProviderType.MOCK:
        if config.from_number:
            return MockConversationEngine(from_number=config.from_number)
        return MockConversationEngine()

    raise ValueError(f"Unsupported conversation provider_type: {config.provider_type}")


@lru_cache(maxsize=1)
def get_conversation_engine() -> ConversationEngine:
    """Create and cache the engine selected by ``CONVERSATION_PROVIDER_TYPE``."""
    return create_conversation_engine(get_conversation_config())
