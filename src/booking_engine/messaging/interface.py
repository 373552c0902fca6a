"""
Messaging interfaces: the template gateway and the plain-text fallback channel.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence
from uuid import UUID

from booking_engine.accounts.repository import WhatsAppCredential
from booking_engine.shared.exceptions import TransientIntegrationError


@dataclass(frozen=True)
class SendResult:
    """Provider acknowledgement of an outbound message."""

    message_id: str | None
    raw_response: dict[str, Any] = field(default_factory=dict)


class MessageDeliveryError(TransientIntegrationError):
    """The provider rejected or failed an outbound message."""


class CredentialResolver(Protocol):
    """Resolves the messaging credential of a business account."""

    async def resolve(self, owner_id: UUID) -> WhatsAppCredential | None:
        """Active credential, or None when the account has no channel."""
        ...


class MessagingGateway(ABC):
    """Sends pre-approved templates on behalf of a business account."""

    @abstractmethod
    async def send_template(
        self,
        owner_id: UUID,
        phone: str,
        template_name: str,
        language_tag: str,
        params: Sequence[str],
    ) -> SendResult:
        """Send a template message.

        Raises:
            ChannelNotConnectedError: The account has no active credential.
            InvalidContactError: ``phone`` cannot be normalized.
            MessageDeliveryError: The provider call failed.
        """
        ...


class TextChannel(ABC):
    """Plain-text fallback used when an account has no template channel."""

    @abstractmethod
    async def send_text(self, owner_id: UUID, phone: str, body: str) -> SendResult:
        """Send a free-form text message."""
        ...
