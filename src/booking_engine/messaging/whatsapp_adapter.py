"""
WhatsApp Cloud API template gateway.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence
from uuid import UUID

import anyio
import httpx

from booking_engine.accounts.repository import WhatsAppCredential
from booking_engine.messaging.config import MessagingConfig, get_messaging_config
from booking_engine.messaging.interface import (
    CredentialResolver,
    MessageDeliveryError,
    MessagingGateway,
    SendResult,
)
from booking_engine.outreach.phone import require_phone_number
from booking_engine.shared.exceptions import ChannelNotConnectedError

logger = logging.getLogger(__name__)


def template_payload(
    phone: str,
    template_name: str,
    language_tag: str,
    params: Sequence[str],
) -> dict[str, Any]:
    components: list[dict[str, Any]] = []
    if params:
        components.append(
            {
                "type": "body",
                "parameters": [{"type": "text", "text": str(p)} for p in params],
            }
        )
    return {
        "messaging_product": "whatsapp",
        "to": phone,
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language_tag},
            "components": components,
        },
    }


class WhatsAppCloudGateway(MessagingGateway):
    """Sends templates with the owning account's WhatsApp Business credential."""

    def __init__(
        self,
        credentials: CredentialResolver,
        config: MessagingConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._credentials = credentials
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

    def _messages_url(self, phone_id: str) -> str:
        base = self._config.graph_base_url.rstrip("/")
        return f"{base}/{self._config.graph_api_version}/{phone_id}/messages"

    async def send_template(
        self,
        owner_id: UUID,
        phone: str,
        template_name: str,
        language_tag: str,
        params: Sequence[str],
    ) -> SendResult:
        credential = await self._credentials.resolve(owner_id)
        if credential is None:
            raise ChannelNotConnectedError(f"WhatsApp Business not connected for account {owner_id}")
        to_number = require_phone_number(phone)
        payload = template_payload(to_number, template_name, language_tag, params)
        return await anyio.to_thread.run_sync(self.post_sync, credential, payload)

    def post_sync(self, credential: WhatsAppCredential, payload: dict[str, Any]) -> SendResult:
        """POST a message payload to the Graph API (blocking)."""
        client = self._get_client()
        template = payload.get("template", {}).get("name")

        try:
            response = client.post(
                self._messages_url(credential.phone_id),
                json=payload,
                headers={"Authorization": f"Bearer {credential.access_token}"},
            )
        except httpx.HTTPError as e:
            logger.exception("HTTP error sending WhatsApp template", extra={"template": template})
            raise MessageDeliveryError(message=f"HTTP error: {e!s}", error_code="HTTP_ERROR") from e

        data = response.json() if response.content else {}
        if response.status_code >= 400:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            logger.error(
                "WhatsApp API error",
                extra={
                    "status_code": response.status_code,
                    "error_code": error.get("code"),
                    "template": template,
                },
            )
            raise MessageDeliveryError(
                message=str(error.get("message") or "WhatsApp send failed"),
                error_code=str(error.get("code") or response.status_code),
                provider_response=data,
            )

        messages = data.get("messages") or [{}]
        message_id = messages[0].get("id")
        logger.info("WhatsApp template sent", extra={"template": template, "message_id": message_id})
        return SendResult(message_id=message_id, raw_response=data)
