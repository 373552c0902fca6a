"""
SQLAlchemy model for conversational agents (voice and chat).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.shared.database import Base, enum_values


class AgentChannel(str, Enum):
    """Channel an agent talks on."""

    VOICE = "voice"
    CHAT = "chat"


class ServiceType(str, Enum):
    """Business vertical an agent is scripted for."""

    CLINIC = "clinic"
    BEAUTY_CLINIC = "beauty_clinic"


class Agent(Base):
    """An agent registered with the external conversation engine."""

    __tablename__ = "agents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("business_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel: Mapped[AgentChannel] = mapped_column(
        SQLEnum(AgentChannel, name="agent_channel", values_callable=enum_values),
        nullable=False,
        default=AgentChannel.VOICE,
    )
    service_type: Mapped[ServiceType] = mapped_column(
        SQLEnum(ServiceType, name="agent_service_type", values_callable=enum_values),
        nullable=False,
        default=ServiceType.CLINIC,
    )
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    external_agent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, channel={self.channel}, name={self.display_name})>"
