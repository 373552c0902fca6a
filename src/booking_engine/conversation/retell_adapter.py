"""
Retell conversation engine adapter.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from booking_engine.conversation.config import ConversationConfig, get_conversation_config
from booking_engine.conversation.interface import (
    CallPlacement,
    CallPlacementError,
    ConversationEngine,
    OutboundCallRequest,
)
from booking_engine.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class RetellAdapter(ConversationEngine):
    """Places phone calls through the Retell REST API using httpx."""

    def __init__(
        self,
        config: ConversationConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or get_conversation_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def from_number(self) -> str:
        return self._config.from_number

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(self._config.timeout_seconds))
        return self._http_client

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _get_api_url(self, endpoint: str) -> str:
        return f"{self._config.api_base_url.rstrip('/')}{endpoint}"

    def initiate_call_sync(self, request: OutboundCallRequest) -> CallPlacement:
        if not self._config.api_key:
            raise ConfigurationError("Conversation engine API key is not configured")

        client = self._get_client()
        payload = {
            "from_number": request.from_number,
            "to_number": request.to_number,
            "override_agent_id": request.agent_external_id,
            "retell_llm_dynamic_variables": request.dynamic_variables,
            "metadata": request.metadata,
        }

        logger.info(
            "Placing Retell call",
            extra={"lead_id": str(request.lead_id), "agent": request.agent_external_id},
        )

        try:
            response = client.post(
                self._get_api_url("/v2/create-phone-call"),
                json=payload,
                headers={"Authorization": f"Bearer {self._config.api_key}"},
            )

            if response.status_code >= 400:
                error_data = response.json() if response.content else {}
                logger.error(
                    "Retell call placement failed",
                    extra={
                        "status_code": response.status_code,
                        "error": error_data,
                        "lead_id": str(request.lead_id),
                    },
                )
                raise CallPlacementError(
                    message=str(error_data.get("message") or error_data.get("error_message") or "Call placement failed"),
                    error_code=str(response.status_code),
                    provider_response=error_data,
                )

            data = response.json()
            return CallPlacement(
                call_id=str(data["call_id"]),
                status=str(data.get("call_status", "registered")),
                created_at=datetime.now(timezone.utc),
                raw_response=data,
            )

        except httpx.HTTPError as e:
            logger.exception(
                "HTTP error during Retell call placement",
                extra={"lead_id": str(request.lead_id)},
            )
            raise CallPlacementError(
                message=f"HTTP error: {e!s}",
                error_code="HTTP_ERROR",
            ) from e
