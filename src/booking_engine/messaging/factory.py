"""
Messaging adapter factory.
"""

from __future__ import annotations

import logging

from booking_engine.messaging.config import MessagingConfig, MessagingProviderType
from booking_engine.messaging.interface import CredentialResolver, MessagingGateway, TextChannel
from booking_engine.messaging.mock_adapter import MockMessagingGateway, MockTextChannel
from booking_engine.messaging.twilio_adapter import TwilioTextChannel
from booking_engine.messaging.whatsapp_adapter import WhatsAppCloudGateway

logger = logging.getLogger(__name__)


def create_messaging_adapters(
    config: MessagingConfig,
    credentials: CredentialResolver,
) -> tuple[MessagingGateway, TextChannel]:
    """Return the template gateway and the plain-text channel for ``config``."""
    logger.info(
        "Messaging config resolved",
        extra={
            "provider_type": config.provider_type.value,
            "graph_api_version": config.graph_api_version,
            "twilio_fallback": bool(config.twilio_messaging_service_sid),
        },
    )

    if config.provider_type == MessagingProviderType.WHATSAPP:
        return WhatsAppCloudGateway(credentials, config), TwilioTextChannel(config)

    if config.provider_type == MessagingProviderType.MOCK:
        return MockMessagingGateway(), MockTextChannel()

    raise ValueError(f"Unsupported messaging provider_type: {config.provider_type}")
