"""
Repository for conversational agents.
"""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.agents.models import Agent, AgentChannel, ServiceType


@dataclass(frozen=True)
class AgentInfo:
    """Agent fields the schedulers need."""

    id: UUID
    owner_id: UUID
    channel: AgentChannel
    display_name: str
    external_agent_id: str | None = None
    service_type: ServiceType = ServiceType.CLINIC
    is_default: bool = False
    is_active: bool = True


class AgentStore(Protocol):
    """Protocol for agent lookups."""

    async def get(self, agent_id: UUID) -> AgentInfo | None:
        """Get an agent by ID."""
        ...

    async def find_voice_agent(self, owner_id: UUID) -> AgentInfo | None:
        """Default active voice agent of an owner, else any active voice agent."""
        ...

    async def find_chat_agent(self, owner_id: UUID, service_type: ServiceType) -> AgentInfo | None:
        """Active chat agent for a service type, default first."""
        ...


def agent_to_info(agent: Agent) -> AgentInfo:
    return AgentInfo(
        id=agent.id,
        owner_id=agent.owner_id,
        channel=AgentChannel(agent.channel),
        display_name=agent.display_name,
        external_agent_id=agent.external_agent_id,
        service_type=ServiceType(agent.service_type),
        is_default=agent.is_default,
        is_active=agent.is_active,
    )


class AgentRepository:
    """Repository for agent database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, agent_id: UUID) -> AgentInfo | None:
        agent = await self._session.get(Agent, agent_id)
        return agent_to_info(agent) if agent is not None else None

    async def _first(self, *conditions) -> AgentInfo | None:
        stmt = (
            select(Agent)
            .where(Agent.is_active.is_(True), *conditions)
            .order_by(Agent.is_default.desc(), Agent.created_at, Agent.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        agent = result.scalar_one_or_none()
        return agent_to_info(agent) if agent is not None else None

    async def find_voice_agent(self, owner_id: UUID) -> AgentInfo | None:
        return await self._first(Agent.owner_id == owner_id, Agent.channel == AgentChannel.VOICE)

    async def find_chat_agent(self, owner_id: UUID, service_type: ServiceType) -> AgentInfo | None:
        return await self._first(
            Agent.owner_id == owner_id,
            Agent.channel == AgentChannel.CHAT,
            Agent.service_type == service_type,
        )
