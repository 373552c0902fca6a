"""
API router for resource availability queries.
"""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.availability.repository import (
    AppointmentRepository,
    ResourceRepository,
    ResourceStore,
)
from booking_engine.availability.schemas import SlotListResponse, SlotResponse
from booking_engine.availability.slot_finder import SlotFinder
from booking_engine.shared.database import get_db_session
from booking_engine.shared.logging import get_logger
from booking_engine.shared.timezone import ensure_aware, normalize_date_string

logger = get_logger(__name__)

router = APIRouter(prefix="/api/resources/{resource_id}/availability", tags=["availability"])


def get_resource_store(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ResourceStore:
    """Dependency for resource lookups."""
    return ResourceRepository(session)


def get_slot_finder(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> SlotFinder:
    """Dependency for the slot finder over stored appointments."""
    return SlotFinder.from_settings(AppointmentRepository(session))


def _parse_date(raw: str, name: str) -> date:
    parsed = normalize_date_string(raw)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name}: {raw!r}",
        )
    return parsed


ResourceId = Annotated[UUID, Path(description="Resource UUID")]
FromParam = Annotated[
    datetime | None,
    Query(alias="from", description="Search strictly after this instant (default: now)"),
]


@router.get(
    "/next",
    response_model=SlotResponse,
    summary="Earliest available slot",
    description="Searches from tomorrow in the resource timezone. When nothing is open "
    "within the horizon a placeholder slot with is_fallback=true is returned.",
)
async def next_slot(
    resource_id: ResourceId,
    resources: Annotated[ResourceStore, Depends(get_resource_store)],
    finder: Annotated[SlotFinder, Depends(get_slot_finder)],
    from_: FromParam = None,
) -> SlotResponse:
    schedule = await resources.get_schedule(resource_id)
    slot = await finder.next_slot(schedule, ensure_aware(from_) if from_ else None)
    return SlotResponse.from_slot(slot, schedule)


@router.get(
    "/slots",
    response_model=SlotListResponse,
    summary="First available slots",
)
async def list_slots(
    resource_id: ResourceId,
    resources: Annotated[ResourceStore, Depends(get_resource_store)],
    finder: Annotated[SlotFinder, Depends(get_slot_finder)],
    from_: FromParam = None,
    max_results: Annotated[int, Query(alias="max", ge=1, le=50)] = 5,
) -> SlotListResponse:
    schedule = await resources.get_schedule(resource_id)
    slots = await finder.slots(schedule, ensure_aware(from_) if from_ else None, max_results)
    return SlotListResponse.from_slots(slots, schedule)


@router.get(
    "/dates/{day}",
    response_model=SlotListResponse,
    summary="All open slots on one date",
)
async def slots_on_date(
    resource_id: ResourceId,
    day: Annotated[str, Path(description="Date as YYYY-MM-DD")],
    resources: Annotated[ResourceStore, Depends(get_resource_store)],
    finder: Annotated[SlotFinder, Depends(get_slot_finder)],
) -> SlotListResponse:
    target = _parse_date(day, "date")
    schedule = await resources.get_schedule(resource_id)
    slots = await finder.slots_on_date(schedule, target)
    return SlotListResponse.from_slots(slots, schedule)


@router.get(
    "/before/{cutoff}",
    response_model=SlotListResponse,
    summary="Earliest slots strictly before a date",
)
async def slots_before(
    resource_id: ResourceId,
    cutoff: Annotated[str, Path(description="Exclusive cutoff date")],
    resources: Annotated[ResourceStore, Depends(get_resource_store)],
    finder: Annotated[SlotFinder, Depends(get_slot_finder)],
    from_: FromParam = None,
    max_results: Annotated[int, Query(alias="max", ge=1, le=10)] = 2,
) -> SlotListResponse:
    cutoff_date = _parse_date(cutoff, "cutoff")
    schedule = await resources.get_schedule(resource_id)
    slots = await finder.slots_before(
        schedule,
        cutoff_date,
        max_results,
        from_=ensure_aware(from_) if from_ else None,
    )
    logger.debug(
        "Earlier slots queried",
        extra={"resource_id": str(resource_id), "cutoff": cutoff_date.isoformat(), "found": len(slots)},
    )
    return SlotListResponse.from_slots(slots, schedule)
