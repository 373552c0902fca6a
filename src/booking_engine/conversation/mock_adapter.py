"""
Mock conversation engine for tests and local runs.
"""

import logging
from datetime import datetime, timezone

from booking_engine.conversation.interface import (
    CallPlacement,
    CallPlacementError,
    ConversationEngine,
    OutboundCallRequest,
)

logger = logging.getLogger(__name__)


class MockConversationEngine(ConversationEngine):
    """Records requests instead of calling anyone."""

    def __init__(self, from_number: str = "+5511900000000") -> None:
        self._from_number = from_number
        self._calls: list[OutboundCallRequest] = []
        self._next_call_id: int = 1
        self._failure: Exception | None = None

    @property
    def from_number(self) -> str:
        return self._from_number

    def reset(self) -> None:
        self._calls.clear()
        self._next_call_id = 1
        self._failure = None

    def configure_failure(
        self,
        should_fail: bool = True,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
        error: Exception | None = None,
    ) -> None:
        if not should_fail:
            self._failure = None
            return
        self._failure = error or CallPlacementError(message=error_message, error_code=error_code)

    @property
    def calls(self) -> list[OutboundCallRequest]:
        return self._calls.copy()

    def get_last_call(self) -> OutboundCallRequest | None:
        return self._calls[-1] if self._calls else None

    def initiate_call_sync(self, request: OutboundCallRequest) -> CallPlacement:
        logger.info(
            "Mock: placing call",
            extra={"to": request.to_number, "lead_id": str(request.lead_id)},
        )

        if self._failure is not None:
            raise self._failure

        self._calls.append(request)
        call_id = f"MOCK_CALL_{self._next_call_id:06d}"
        self._next_call_id += 1

        return CallPlacement(
            call_id=call_id,
            status="registered",
            created_at=datetime.now(timezone.utc),
            raw_response={"mock": True, "call_id": call_id},
        )
