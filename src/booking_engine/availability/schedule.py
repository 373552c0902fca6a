"""
Value types describing a resource's schedule and the slots derived from it.

All types are immutable. ``ResourceSchedule.from_raw`` is the only place that
reads the loosely-typed JSON stored on resources; malformed day entries become
closed days instead of errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from booking_engine.shared.logging import get_logger
from booking_engine.shared.timezone import normalize_date_string, parse_clock, resolve_zone

logger = get_logger(__name__)

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_WINDOW_KEYS = ("timeSlots", "time_slots", "windows")


class OverrideKind(str, Enum):
    """Date override kinds."""

    UNAVAILABLE = "unavailable"
    AVAILABLE = "available"


class AppointmentStatus(str, Enum):
    """Appointment statuses; only SCHEDULED blocks a slot."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class TimeWindow:
    """Wall-clock window ``[start, end)``; ``end`` None means a single slot at ``start``."""

    start: time
    end: time | None = None

    def bounds_on(self, day: date, tz: ZoneInfo, duration: timedelta) -> tuple[datetime, datetime]:
        """UTC instants bounding the window on ``day`` in ``tz``."""
        opening = datetime.combine(day, self.start, tzinfo=tz).astimezone(timezone.utc)
        if self.end is None:
            return opening, opening + duration
        return opening, datetime.combine(day, self.end, tzinfo=tz).astimezone(timezone.utc)


@dataclass(frozen=True)
class DaySchedule:
    """One weekday entry of the working-hours template."""

    enabled: bool
    windows: tuple[TimeWindow, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.enabled and bool(self.windows)


CLOSED_DAY = DaySchedule(enabled=False)


@dataclass(frozen=True)
class WorkingHoursTemplate:
    """Recurring weekly pattern keyed by Python weekday index (0 = Monday)."""

    days: Mapping[int, DaySchedule] = field(default_factory=dict)

    def for_weekday(self, weekday: int) -> DaySchedule:
        return self.days.get(weekday, CLOSED_DAY)


@dataclass(frozen=True)
class DateOverride:
    """Single-date exception to the weekly template."""

    day: date
    kind: OverrideKind
    windows: tuple[TimeWindow, ...] = ()


@dataclass(frozen=True)
class BookedInterval:
    """A booked appointment as seen by the conflict check: ``[start, end)``."""

    start: datetime
    end: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Half-open intervals: touching boundaries do not overlap.
        return start < self.end and end > self.start


@dataclass(frozen=True)
class Slot:
    """A bookable start instant of fixed duration."""

    start: datetime
    end: datetime
    resource_id: UUID
    local_date: date
    is_fallback: bool = False


@dataclass(frozen=True)
class ResourceSchedule:
    """Everything the slot algorithm needs to know about one resource."""

    resource_id: UUID
    timezone: ZoneInfo
    template: WorkingHoursTemplate
    overrides: tuple[DateOverride, ...] = ()
    slot_duration: timedelta = timedelta(minutes=60)

    @property
    def blackout_dates(self) -> frozenset[date]:
        return frozenset(o.day for o in self.overrides if o.kind is OverrideKind.UNAVAILABLE)

    def is_blacklisted(self, day: date) -> bool:
        return day in self.blackout_dates

    def effective_day(self, day: date) -> DaySchedule:
        """Replacement windows from an ``available`` override, else the weekday entry."""
        for override in self.overrides:
            if override.kind is OverrideKind.AVAILABLE and override.day == day and override.windows:
                return DaySchedule(enabled=True, windows=override.windows)
        return self.template.for_weekday(day.weekday())

    @classmethod
    def from_raw(
        cls,
        resource_id: UUID,
        working_hours: Mapping[str, Any] | None,
        date_overrides: Sequence[Any] | None,
        timezone_name: str | None,
        slot_duration_minutes: int | None,
        default_timezone: str = "America/Sao_Paulo",
        default_duration_minutes: int = 60,
    ) -> "ResourceSchedule":
        """Build a schedule from the JSON shapes stored on resources."""
        duration = default_duration_minutes
        if isinstance(slot_duration_minutes, int) and slot_duration_minutes > 0:
            duration = slot_duration_minutes
        return cls(
            resource_id=resource_id,
            timezone=resolve_zone(timezone_name, default_timezone),
            template=parse_working_hours(working_hours),
            overrides=parse_date_overrides(date_overrides, resource_id),
            slot_duration=timedelta(minutes=duration),
        )


def parse_windows(raw: Any) -> tuple[TimeWindow, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    windows: list[TimeWindow] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        start = parse_clock(item.get("start"))
        if start is None:
            continue
        end = parse_clock(item.get("end")) if item.get("end") is not None else None
        if item.get("end") is not None and (end is None or end <= start):
            continue
        windows.append(TimeWindow(start=start, end=end))
    return tuple(sorted(windows, key=lambda w: w.start))


def _raw_windows(entry: Mapping[str, Any]) -> Any:
    for key in _WINDOW_KEYS:
        if key in entry:
            return entry[key]
    return None


def parse_day_schedule(raw: Any) -> DaySchedule:
    if not isinstance(raw, Mapping):
        return CLOSED_DAY
    # Anything other than a real boolean True closes the day.
    if raw.get("enabled") is not True:
        return CLOSED_DAY
    windows = parse_windows(_raw_windows(raw))
    if not windows:
        return CLOSED_DAY
    return DaySchedule(enabled=True, windows=windows)


def parse_working_hours(raw: Mapping[str, Any] | None) -> WorkingHoursTemplate:
    if not isinstance(raw, Mapping):
        return WorkingHoursTemplate()
    days = {
        index: parse_day_schedule(raw.get(name))
        for index, name in enumerate(WEEKDAY_NAMES)
    }
    return WorkingHoursTemplate(days=days)


def parse_date_overrides(raw: Sequence[Any] | None, resource_id: UUID | None = None) -> tuple[DateOverride, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    overrides: list[DateOverride] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        try:
            kind = OverrideKind(item.get("type"))
        except ValueError:
            continue
        day = normalize_date_string(item.get("date"))
        if day is None:
            logger.warning(
                "Ignoring date override with unparseable date",
                extra={"resource_id": str(resource_id), "raw_date": item.get("date")},
            )
            continue
        windows = parse_windows(_raw_windows(item)) if kind is OverrideKind.AVAILABLE else ()
        overrides.append(DateOverride(day=day, kind=kind, windows=windows))
    return tuple(overrides)
