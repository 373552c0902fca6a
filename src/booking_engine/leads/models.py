"""
SQLAlchemy models for leads and their outbound call attempts.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.leads.lifecycle import LeadStatus
from booking_engine.shared.database import Base, JSONType, enum_values


class CallOutcome(str, Enum):
    """Outcome of one call attempt."""

    INITIATED = "initiated"
    COMPLETED = "completed"
    NO_ANSWER = "no_answer"
    BUSY = "busy"
    FAILED = "failed"


class Lead(Base):
    """Prospective client driven toward a booked appointment."""

    __tablename__ = "leads"
    __table_args__ = (Index("ix_leads_status_next_retry", "status", "next_retry_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("business_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    resource_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("resources.id", ondelete="SET NULL"),
        nullable=True,
    )
    agent_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("agents.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    status: Mapped[LeadStatus] = mapped_column(
        SQLEnum(LeadStatus, name="lead_status", values_callable=enum_values),
        nullable=False,
        default=LeadStatus.NEW,
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    max_attempts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    agent_variables: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
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
        return f"<Lead(id={self.id}, status={self.status})>"


class CallAttempt(Base):
    """Append-only record of one outbound call try."""

    __tablename__ = "call_attempts"
    __table_args__ = (
        UniqueConstraint("lead_id", "attempt_no", name="uq_call_attempts_lead_attempt"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    lead_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attempt_no: Mapped[int] = mapped_column(Integer, nullable=False)
    agent_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    external_call_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    outcome: Mapped[CallOutcome] = mapped_column(
        SQLEnum(CallOutcome, name="call_outcome", values_callable=enum_values),
        nullable=False,
        default=CallOutcome.INITIATED,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<CallAttempt(lead={self.lead_id}, no={self.attempt_no}, outcome={self.outcome})>"
