"""
Repositories for resources and appointments.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.availability.models import Appointment, Resource, ResourceCategory
from booking_engine.availability.schedule import AppointmentStatus, BookedInterval, ResourceSchedule
from booking_engine.config import get_settings
from booking_engine.shared.exceptions import NotFoundError
from booking_engine.shared.timezone import ensure_aware


@dataclass(frozen=True)
class ResourceInfo:
    """Descriptive fields of a resource."""

    id: UUID
    owner_id: UUID
    name: str
    category: ResourceCategory
    is_active: bool = True


@dataclass(frozen=True)
class AppointmentInfo:
    """Appointment as listed for a lead."""

    id: UUID
    resource_id: UUID
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus


class ResourceStore(Protocol):
    """Protocol for resource lookups."""

    async def get_schedule(self, resource_id: UUID) -> ResourceSchedule:
        """Schedule value for a resource; raises NotFoundError when missing."""
        ...

    async def get(self, resource_id: UUID) -> ResourceInfo | None:
        """Get a resource by ID."""
        ...

    async def list_peers(self, owner_id: UUID, exclude_resource_id: UUID | None) -> Sequence[ResourceInfo]:
        """Other active resources of the same owner."""
        ...

    async def first_active_for_owner(self, owner_id: UUID) -> ResourceInfo | None:
        """Oldest active resource of an owner."""
        ...


class AppointmentStore(Protocol):
    """Protocol for appointment reads."""

    async def list_scheduled(
        self,
        resource_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> Sequence[BookedInterval]:
        """Scheduled appointments overlapping ``[range_start, range_end)``."""
        ...

    async def list_for_lead(self, lead_id: UUID) -> Sequence[AppointmentInfo]:
        """Scheduled appointments booked for a lead."""
        ...


def resource_to_info(resource: Resource) -> ResourceInfo:
    return ResourceInfo(
        id=resource.id,
        owner_id=resource.owner_id,
        name=resource.name,
        category=ResourceCategory(resource.category),
        is_active=resource.is_active,
    )


def resource_to_schedule(resource: Resource) -> ResourceSchedule:
    settings = get_settings()
    return ResourceSchedule.from_raw(
        resource_id=resource.id,
        working_hours=resource.working_hours,
        date_overrides=resource.date_overrides,
        timezone_name=resource.timezone,
        slot_duration_minutes=resource.slot_duration_minutes,
        default_timezone=settings.default_resource_timezone,
    )


class ResourceRepository:
    """Repository for resource database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_schedule(self, resource_id: UUID) -> ResourceSchedule:
        """Load a resource and parse its schedule.

        Args:
            resource_id: Resource UUID.

        Returns:
            Parsed schedule in the resource's own timezone.

        Raises:
            NotFoundError: If the resource does not exist.
        """
        resource = await self._session.get(Resource, resource_id)
        if resource is None:
            raise NotFoundError(f"Resource {resource_id} not found")
        return resource_to_schedule(resource)

    async def get(self, resource_id: UUID) -> ResourceInfo | None:
        resource = await self._session.get(Resource, resource_id)
        return resource_to_info(resource) if resource is not None else None

    async def list_peers(self, owner_id: UUID, exclude_resource_id: UUID | None) -> Sequence[ResourceInfo]:
        stmt = select(Resource).where(
            Resource.owner_id == owner_id,
            Resource.is_active.is_(True),
        )
        if exclude_resource_id is not None:
            stmt = stmt.where(Resource.id != exclude_resource_id)
        result = await self._session.execute(stmt.order_by(Resource.name))
        return [resource_to_info(r) for r in result.scalars().all()]

    async def first_active_for_owner(self, owner_id: UUID) -> ResourceInfo | None:
        stmt = (
            select(Resource)
            .where(Resource.owner_id == owner_id, Resource.is_active.is_(True))
            .order_by(Resource.created_at, Resource.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        resource = result.scalar_one_or_none()
        return resource_to_info(resource) if resource is not None else None


class AppointmentRepository:
    """Read-only repository over booked appointments."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_scheduled(
        self,
        resource_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> Sequence[BookedInterval]:
        """Scheduled appointments of a resource overlapping a range.

        Uses the same half-open test as the slot check, so an appointment that
        started before ``range_start`` but runs into it is included.
        """
        stmt = (
            select(Appointment)
            .where(
                Appointment.resource_id == resource_id,
                Appointment.status == AppointmentStatus.SCHEDULED,
                Appointment.start_at < range_end,
                Appointment.end_at > range_start,
            )
            .order_by(Appointment.start_at)
        )
        result = await self._session.execute(stmt)
        return [
            BookedInterval(
                start=ensure_aware(a.start_at),
                end=ensure_aware(a.end_at),
                status=AppointmentStatus(a.status),
            )
            for a in result.scalars().all()
        ]

    async def list_for_lead(self, lead_id: UUID) -> Sequence[AppointmentInfo]:
        stmt = (
            select(Appointment)
            .where(
                Appointment.lead_id == lead_id,
                Appointment.status == AppointmentStatus.SCHEDULED,
            )
            .order_by(Appointment.start_at)
        )
        result = await self._session.execute(stmt)
        return [
            AppointmentInfo(
                id=a.id,
                resource_id=a.resource_id,
                start_at=ensure_aware(a.start_at),
                end_at=ensure_aware(a.end_at),
                status=AppointmentStatus(a.status),
            )
            for a in result.scalars().all()
        ]
