"""
Twilio plain-text fallback channel (WhatsApp sender through a messaging service).
"""

from __future__ import annotations

import logging
from uuid import UUID

import anyio
import httpx

from booking_engine.messaging.config import MessagingConfig, get_messaging_config
from booking_engine.messaging.interface import MessageDeliveryError, SendResult, TextChannel
from booking_engine.outreach.phone import require_phone_number
from booking_engine.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TwilioTextChannel(TextChannel):
    """Sends free-form text through Twilio's Messages API using httpx."""

    def __init__(
        self,
        config: MessagingConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or get_messaging_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(self._config.timeout_seconds))
        return self._http_client

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _get_auth(self) -> tuple[str, str]:
        return (self._config.twilio_account_sid, self._config.twilio_auth_token)

    def _get_api_url(self, endpoint: str) -> str:
        base = self._config.twilio_api_base_url.rstrip("/")
        return f"{base}/2010-04-01/Accounts/{self._config.twilio_account_sid}{endpoint}"

    async def send_text(self, owner_id: UUID, phone: str, body: str) -> SendResult:
        to_number = require_phone_number(phone)
        return await anyio.to_thread.run_sync(self.send_text_sync, owner_id, to_number, body)

    def send_text_sync(self, owner_id: UUID, to_number: str, body: str) -> SendResult:
        if not self._config.twilio_account_sid or not self._config.twilio_messaging_service_sid:
            raise ConfigurationError("Twilio fallback channel is not configured")

        client = self._get_client()
        payload = {
            "To": f"whatsapp:{to_number}",
            "MessagingServiceSid": self._config.twilio_messaging_service_sid,
            "Body": body,
        }

        logger.info("Sending fallback text via Twilio", extra={"owner_id": str(owner_id)})

        try:
            response = client.post(
                self._get_api_url("/Messages.json"),
                data=payload,
                auth=self._get_auth(),
            )
        except httpx.HTTPError as e:
            logger.exception("HTTP error sending Twilio message", extra={"owner_id": str(owner_id)})
            raise MessageDeliveryError(message=f"HTTP error: {e!s}", error_code="HTTP_ERROR") from e

        data = response.json() if response.content else {}
        if response.status_code >= 400:
            logger.error(
                "Twilio message failed",
                extra={"status_code": response.status_code, "error": data},
            )
            raise MessageDeliveryError(
                message=str(data.get("message", "Message send failed")),
                error_code=str(data.get("code", response.status_code)),
                provider_response=data,
            )

        return SendResult(message_id=data.get("sid"), raw_response=data)
