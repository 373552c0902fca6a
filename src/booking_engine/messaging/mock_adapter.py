"""
In-memory messaging adapters for tests and local runs.
"""

import logging
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from booking_engine.messaging.interface import (
    MessageDeliveryError,
    MessagingGateway,
    SendResult,
    TextChannel,
)
from booking_engine.outreach.phone import require_phone_number
from booking_engine.shared.exceptions import ChannelNotConnectedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SentTemplate:
    owner_id: UUID
    phone: str
    template_name: str
    language_tag: str
    params: tuple[str, ...]


@dataclass(frozen=True)
class SentText:
    owner_id: UUID
    phone: str
    body: str


class MockMessagingGateway(MessagingGateway):
    """Records template sends; accounts can be marked as disconnected."""

    def __init__(self) -> None:
        self._sent: list[SentTemplate] = []
        self._disconnected: set[UUID] = set()
        self._next_id = 1
        self._should_fail = False
        self._fail_error = "Mock failure"

    def reset(self) -> None:
        self._sent.clear()
        self._disconnected.clear()
        self._next_id = 1
        self._should_fail = False

    def disconnect(self, owner_id: UUID) -> None:
        self._disconnected.add(owner_id)

    def configure_failure(self, should_fail: bool = True, error_message: str = "Mock failure") -> None:
        self._should_fail = should_fail
        self._fail_error = error_message

    @property
    def sent(self) -> list[SentTemplate]:
        return self._sent.copy()

    async def send_template(
        self,
        owner_id: UUID,
        phone: str,
        template_name: str,
        language_tag: str,
        params: Sequence[str],
    ) -> SendResult:
        if owner_id in self._disconnected:
            raise ChannelNotConnectedError(f"Account {owner_id} has no messaging channel")
        if self._should_fail:
            raise MessageDeliveryError(message=self._fail_error, error_code="MOCK_ERROR")

        to_number = require_phone_number(phone)
        self._sent.append(
            SentTemplate(owner_id, to_number, template_name, language_tag, tuple(params))
        )
        message_id = f"MOCK_MSG_{self._next_id:06d}"
        self._next_id += 1
        logger.info("Mock: template sent", extra={"template": template_name, "message_id": message_id})
        return SendResult(message_id=message_id, raw_response={"mock": True})


class MockTextChannel(TextChannel):
    """Records plain-text sends."""

    def __init__(self) -> None:
        self._sent: list[SentText] = []

    def reset(self) -> None:
        self._sent.clear()

    @property
    def sent(self) -> list[SentText]:
        return self._sent.copy()

    async def send_text(self, owner_id: UUID, phone: str, body: str) -> SendResult:
        to_number = require_phone_number(phone)
        self._sent.append(SentText(owner_id, to_number, body))
        return SendResult(message_id=f"MOCK_TXT_{len(self._sent):06d}", raw_response={"mock": True})
