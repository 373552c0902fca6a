"""
SQLAlchemy models for bookable resources and their appointments.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from booking_engine.availability.schedule import AppointmentStatus
from booking_engine.shared.database import Base, JSONType, enum_values


class ResourceCategory(str, Enum):
    """What a resource represents."""

    DOCTOR = "doctor"
    TREATMENT = "treatment"
    OWNER = "owner"


class Resource(Base):
    """A doctor, treatment offering or owner-wide calendar."""

    __tablename__ = "resources"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("business_accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[ResourceCategory] = mapped_column(
        SQLEnum(ResourceCategory, name="resource_category", values_callable=enum_values),
        nullable=False,
        default=ResourceCategory.DOCTOR,
    )
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    working_hours: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    date_overrides: Mapped[list[Any] | None] = mapped_column(JSONType, nullable=True)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Resource(id={self.id}, name={self.name}, category={self.category})>"


class Appointment(Base):
    """Booked interval against a resource. Written by the booking flow."""

    __tablename__ = "appointments"
    __table_args__ = (Index("ix_appointments_resource_start", "resource_id", "start_at"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    resource_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    lead_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, name="appointment_status", values_callable=enum_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, resource={self.resource_id}, start={self.start_at})>"
