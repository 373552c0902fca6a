"""
Conversation engine interface definition.

The engine places the outbound call and runs the dialogue; this service only
asks it to start a call for a lead with a given agent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

import anyio

from booking_engine.agents.repository import AgentInfo
from booking_engine.leads.records import LeadRecord
from booking_engine.outreach.phone import require_phone_number
from booking_engine.shared.exceptions import (
    AgentNotConfiguredError,
    ConfigurationError,
    TransientIntegrationError,
)


@dataclass(frozen=True)
class OutboundCallRequest:
    """Request to place an outbound call."""

    lead_id: UUID
    to_number: str
    from_number: str
    agent_external_id: str
    dynamic_variables: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallPlacement:
    """Response from call placement."""

    call_id: str
    status: str
    created_at: datetime
    raw_response: dict[str, Any] = field(default_factory=dict)


class CallPlacementError(TransientIntegrationError):
    """The engine rejected or failed the call request."""


def call_variables(lead: LeadRecord, phone: str) -> dict[str, str]:
    """Dynamic variables handed to the voice agent."""
    variables = lead.variables.as_strings()
    variables.update(
        name=lead.first_name,
        first_name=lead.first_name,
        phone=phone,
        phone_last4=phone[-4:],
        lead_id=str(lead.id),
    )
    return variables


def build_call_request(
    lead: LeadRecord,
    agent: AgentInfo | None,
    from_number: str,
) -> OutboundCallRequest:
    """Validate a lead/agent pair and build the engine request.

    Raises:
        AgentNotConfiguredError: Agent missing, inactive or without an engine handle.
        InvalidContactError: Lead phone missing or not normalizable.
        ConfigurationError: No outbound caller number configured.
    """
    if agent is None or not agent.is_active or not agent.external_agent_id:
        raise AgentNotConfiguredError(f"Lead {lead.id} has no usable voice agent")
    if not from_number:
        raise ConfigurationError("Outbound caller number is not configured")

    to_number = require_phone_number(lead.phone)
    return OutboundCallRequest(
        lead_id=lead.id,
        to_number=to_number,
        from_number=from_number,
        agent_external_id=agent.external_agent_id,
        dynamic_variables=call_variables(lead, to_number),
        metadata={"lead_id": str(lead.id), "agent_id": str(agent.id)},
    )


class ConversationEngine(ABC):
    """Abstract interface for conversation engines.

    ``place_call`` (or ``prepare_call`` then ``initiate_call``) is the async
    entrypoint; adapters implement the blocking ``initiate_call_sync`` which
    runs in a worker thread.
    """

    @property
    @abstractmethod
    def from_number(self) -> str:
        """Caller number used for outbound calls."""

    def prepare_call(self, lead: LeadRecord, agent: AgentInfo | None) -> OutboundCallRequest:
        """Validate and build the request without contacting the engine."""
        return build_call_request(lead, agent, self.from_number)

    async def initiate_call(self, request: OutboundCallRequest) -> CallPlacement:
        return await anyio.to_thread.run_sync(self.initiate_call_sync, request)

    async def place_call(self, lead: LeadRecord, agent: AgentInfo | None) -> CallPlacement:
        return await self.initiate_call(self.prepare_call(lead, agent))

    @abstractmethod
    def initiate_call_sync(self, request: OutboundCallRequest) -> CallPlacement:
        """Place the call (blocking)."""
        ...
