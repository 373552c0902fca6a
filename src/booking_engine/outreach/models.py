"""
SQLAlchemy models for per-phone outreach sessions and their messages.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.shared.database import Base, JSONType, enum_values


class OutreachSessionStatus(str, Enum):
    """Messaging session state."""

    OPEN = "open"
    PENDING_RESPONSE = "pending_response"
    CLOSED = "closed"


ACTIVE_SESSION_STATUSES = (OutreachSessionStatus.OPEN, OutreachSessionStatus.PENDING_RESPONSE)


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageSender(str, Enum):
    """Who authored a message in an outreach session."""

    SYSTEM = "system"
    AGENT = "agent"
    LEAD = "lead"


class OutreachRecord(Base):
    """Conversation session keyed by normalized phone number."""

    __tablename__ = "outreach_records"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("business_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    lead_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True,
    )
    agent_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    status: Mapped[OutreachSessionStatus] = mapped_column(
        SQLEnum(OutreachSessionStatus, name="outreach_session_status", values_callable=enum_values),
        nullable=False,
        default=OutreachSessionStatus.OPEN,
    )
    last_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    session_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OutreachRecord(phone={self.phone}, status={self.status})>"


class OutreachMessage(Base):
    """One message exchanged within an outreach session."""

    __tablename__ = "outreach_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    outreach_record_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("outreach_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    direction: Mapped[MessageDirection] = mapped_column(
        SQLEnum(MessageDirection, name="message_direction", values_callable=enum_values),
        nullable=False,
    )
    sender: Mapped[MessageSender] = mapped_column(
        SQLEnum(MessageSender, name="message_sender", values_callable=enum_values),
        nullable=False,
    )
    external_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_template: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OutreachMessage(record={self.outreach_record_id}, direction={self.direction})>"
