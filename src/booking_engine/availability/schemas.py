"""
Pydantic schemas for the availability API.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from booking_engine.availability.schedule import ResourceSchedule, Slot
from booking_engine.shared.timezone import format_slot_display


class SlotResponse(BaseModel):
    """A candidate slot."""

    start: datetime = Field(..., description="Slot start (timezone-aware)")
    end: datetime = Field(..., description="Slot end (timezone-aware)")
    resource_id: UUID
    local_date: date = Field(..., description="Calendar date in the resource timezone")
    display: str = Field(..., description="Start formatted for outbound messages")
    is_fallback: bool = Field(
        default=False,
        description="True for the degraded-availability placeholder, never a real opening",
    )

    @classmethod
    def from_slot(cls, slot: Slot, schedule: ResourceSchedule) -> "SlotResponse":
        return cls(
            start=slot.start,
            end=slot.end,
            resource_id=slot.resource_id,
            local_date=slot.local_date,
            display=format_slot_display(slot.start, schedule.timezone),
            is_fallback=slot.is_fallback,
        )


class SlotListResponse(BaseModel):
    """Chronological list of slots for one resource."""

    resource_id: UUID
    timezone: str
    slots: list[SlotResponse]
    count: int

    @classmethod
    def from_slots(cls, slots: list[Slot], schedule: ResourceSchedule) -> "SlotListResponse":
        items = [SlotResponse.from_slot(s, schedule) for s in slots]
        return cls(
            resource_id=schedule.resource_id,
            timezone=schedule.timezone.key,
            slots=items,
            count=len(items),
        )
