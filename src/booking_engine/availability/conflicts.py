"""
Read-only view of a resource's booked appointments for one time range.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol, Sequence
from uuid import UUID

from booking_engine.availability.schedule import AppointmentStatus, BookedInterval
from booking_engine.shared.exceptions import AppointmentStoreError
from booking_engine.shared.timezone import ensure_aware


class AppointmentReader(Protocol):
    """Protocol for the appointment store as seen by the slot search."""

    async def list_scheduled(
        self,
        resource_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> Sequence[BookedInterval]:
        """Return ``scheduled`` appointments overlapping ``[range_start, range_end)``."""
        ...


@dataclass(frozen=True)
class ConflictIndex:
    """Booked intervals of one resource, sorted by start."""

    intervals: tuple[BookedInterval, ...] = ()

    @classmethod
    def from_intervals(cls, intervals: Iterable[BookedInterval]) -> "ConflictIndex":
        blocking = [
            BookedInterval(ensure_aware(i.start), ensure_aware(i.end), i.status)
            for i in intervals
            if i.status is AppointmentStatus.SCHEDULED
        ]
        return cls(intervals=tuple(sorted(blocking, key=lambda i: i.start)))

    @classmethod
    async def load(
        cls,
        reader: AppointmentReader,
        resource_id: UUID,
        range_start: datetime,
        range_end: datetime,
    ) -> "ConflictIndex":
        """Fetch the range once; store failures surface as ``AppointmentStoreError``."""
        try:
            intervals = await reader.list_scheduled(resource_id, range_start, range_end)
        except AppointmentStoreError:
            raise
        except Exception as exc:
            raise AppointmentStoreError(
                f"Failed to read appointments for resource {resource_id}",
                error_code="APPOINTMENT_READ_FAILED",
            ) from exc
        return cls.from_intervals(intervals)

    def conflicts(self, start: datetime, end: datetime) -> bool:
        for interval in self.intervals:
            if interval.start >= end:
                break
            if interval.overlaps(start, end):
                return True
        return False

    def __len__(self) -> int:
        return len(self.intervals)
