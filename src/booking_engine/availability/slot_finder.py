"""
Bookable slot search over a resource schedule.

The generation functions are pure: they take a ``ResourceSchedule``, a date and
a ``ConflictIndex`` and return slots. ``SlotFinder`` only adds the injected
appointment reader, clock and search horizons on top of them.
"""

from __future__ import annotations

import heapq
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Iterator

from booking_engine.availability.conflicts import AppointmentReader, ConflictIndex
from booking_engine.availability.schedule import ResourceSchedule, Slot
from booking_engine.config import Settings, get_settings
from booking_engine.shared.logging import get_logger
from booking_engine.shared.timezone import (
    at_local,
    date_in_zone,
    ensure_aware,
    local_day_bounds,
    utcnow,
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def _window_candidates(
    window_start: datetime,
    window_end: datetime,
    duration: timedelta,
    tz: tzinfo,
) -> Iterator[tuple[datetime, datetime]]:
    # Step in UTC: a DST change inside the window must not repeat or shorten a slot.
    current = window_start
    while current + duration <= window_end:
        yield current.astimezone(tz), (current + duration).astimezone(tz)
        current = current + duration


def candidate_intervals(schedule: ResourceSchedule, day: date) -> Iterator[tuple[datetime, datetime]]:
    """Yield ``(start, end)`` candidates for ``day`` in chronological order.

    Each window is stepped by the resource's slot duration; a candidate whose
    end would pass the window end is not produced. Overlapping windows are
    merged by start instant and may yield the same start twice.
    """
    if schedule.is_blacklisted(day):
        return
    effective = schedule.effective_day(day)
    if not effective.is_open:
        return

    duration = schedule.slot_duration
    streams = [
        _window_candidates(*window.bounds_on(day, schedule.timezone, duration), duration, schedule.timezone)
        for window in effective.windows
    ]
    yield from heapq.merge(*streams, key=lambda candidate: candidate[0].astimezone(timezone.utc))


def slots_for_day(
    schedule: ResourceSchedule,
    day: date,
    conflicts: ConflictIndex,
    after: datetime,
    limit: int | None = None,
) -> list[Slot]:
    """Non-conflicting slots on ``day`` starting strictly after ``after``."""
    after = ensure_aware(after)
    found: list[Slot] = []
    seen: set[datetime] = set()
    for start, end in candidate_intervals(schedule, day):
        instant = start.astimezone(timezone.utc)
        if start <= after or instant in seen:
            continue
        if conflicts.conflicts(start, end):
            continue
        seen.add(instant)
        found.append(
            Slot(start=start, end=end, resource_id=schedule.resource_id, local_date=day)
        )
        if limit is not None and len(found) >= limit:
            break
    return found


def has_candidates(schedule: ResourceSchedule, day: date) -> bool:
    return next(candidate_intervals(schedule, day), None) is not None


class SlotFinder:
    """Answers the four availability queries for a resource schedule."""

    def __init__(
        self,
        appointments: AppointmentReader,
        clock: Clock | None = None,
        *,
        next_slot_horizon_days: int = 30,
        slots_horizon_days: int = 60,
        before_window_days: int = 14,
        fallback_days: int = 14,
        fallback_hour: int = 9,
    ) -> None:
        self._appointments = appointments
        self._clock = clock or utcnow
        self._next_slot_horizon_days = next_slot_horizon_days
        self._slots_horizon_days = slots_horizon_days
        self._before_window_days = before_window_days
        self._fallback_days = fallback_days
        self._fallback_hour = fallback_hour

    @classmethod
    def from_settings(
        cls,
        appointments: AppointmentReader,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> "SlotFinder":
        settings = settings or get_settings()
        return cls(
            appointments,
            clock,
            next_slot_horizon_days=settings.next_slot_horizon_days,
            slots_horizon_days=settings.slots_horizon_days,
            before_window_days=settings.slots_before_window_days,
            fallback_days=settings.fallback_slot_days,
            fallback_hour=settings.fallback_slot_hour,
        )

    async def _day_slots(
        self,
        schedule: ResourceSchedule,
        day: date,
        after: datetime,
        limit: int | None,
    ) -> list[Slot]:
        if not has_candidates(schedule, day):
            return []
        range_start, range_end = local_day_bounds(day, schedule.timezone)
        conflicts = await ConflictIndex.load(
            self._appointments, schedule.resource_id, range_start, range_end
        )
        return slots_for_day(schedule, day, conflicts, after, limit)

    async def _collect(
        self,
        schedule: ResourceSchedule,
        after: datetime,
        first_day: date,
        days: int,
        max_results: int,
        before: date | None = None,
    ) -> list[Slot]:
        results: list[Slot] = []
        for offset in range(days):
            if len(results) >= max_results:
                break
            day = first_day + timedelta(days=offset)
            if before is not None and day >= before:
                break
            results.extend(
                await self._day_slots(schedule, day, after, max_results - len(results))
            )
        return results[:max_results]

    def _tomorrow(self, schedule: ResourceSchedule, from_: datetime) -> date:
        return date_in_zone(from_, schedule.timezone) + timedelta(days=1)

    def fallback_slot(self, schedule: ResourceSchedule, from_: datetime) -> Slot:
        """Degraded-availability placeholder; never a real opening."""
        day = date_in_zone(from_, schedule.timezone) + timedelta(days=self._fallback_days)
        start = at_local(day, time(self._fallback_hour, 0), schedule.timezone)
        return Slot(
            start=start,
            end=(start.astimezone(timezone.utc) + schedule.slot_duration).astimezone(schedule.timezone),
            resource_id=schedule.resource_id,
            local_date=day,
            is_fallback=True,
        )

    async def next_slot(self, schedule: ResourceSchedule, from_: datetime | None = None) -> Slot:
        """Earliest slot after ``from_``, searching from tomorrow in the resource zone.

        Returns the tagged fallback slot when the horizon holds no opening.
        """
        from_ = ensure_aware(from_ or self._clock())
        found = await self._collect(
            schedule,
            from_,
            self._tomorrow(schedule, from_),
            self._next_slot_horizon_days,
            1,
        )
        if found:
            return found[0]

        logger.warning(
            "No availability in horizon, returning fallback slot",
            extra={
                "resource_id": str(schedule.resource_id),
                "horizon_days": self._next_slot_horizon_days,
            },
        )
        return self.fallback_slot(schedule, from_)

    async def slots(
        self,
        schedule: ResourceSchedule,
        from_: datetime | None = None,
        max_results: int = 5,
    ) -> list[Slot]:
        """Up to ``max_results`` slots in chronological order."""
        if max_results <= 0:
            return []
        from_ = ensure_aware(from_ or self._clock())
        return await self._collect(
            schedule,
            from_,
            self._tomorrow(schedule, from_),
            self._slots_horizon_days,
            max_results,
        )

    async def slots_on_date(self, schedule: ResourceSchedule, day: date) -> list[Slot]:
        """Every open slot on ``day``; past instants are dropped."""
        return await self._day_slots(schedule, day, ensure_aware(self._clock()), None)

    async def slots_before(
        self,
        schedule: ResourceSchedule,
        cutoff: date,
        max_results: int = 2,
        from_: datetime | None = None,
    ) -> list[Slot]:
        """Earliest slots on dates strictly before ``cutoff``, within the lookahead window."""
        if max_results <= 0:
            return []
        from_ = ensure_aware(from_ or self._clock())
        return await self._collect(
            schedule,
            from_,
            self._tomorrow(schedule, from_),
            self._before_window_days,
            max_results,
            before=cutoff,
        )
