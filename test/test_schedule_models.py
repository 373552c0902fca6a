"""Tests for schedule value types and parsing of stored working hours."""

from datetime import date, datetime, time, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

from booking_engine.availability.conflicts import ConflictIndex
from booking_engine.availability.schedule import (
    AppointmentStatus,
    BookedInterval,
    OverrideKind,
    ResourceSchedule,
    TimeWindow,
    parse_date_overrides,
    parse_day_schedule,
    parse_windows,
    parse_working_hours,
)

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestParseWindows:
    def test_sorted_and_filtered(self) -> None:
        windows = parse_windows(
            [
                {"start": "14:00", "end": "18:00"},
                {"start": "08:00", "end": "12:00"},
                {"start": "bad", "end": "10:00"},
                {"start": "12:00", "end": "11:00"},
                {"start": "10:00", "end": "nope"},
                "not-a-dict",
            ]
        )
        assert windows == (
            TimeWindow(time(8, 0), time(12, 0)),
            TimeWindow(time(14, 0), time(18, 0)),
        )

    def test_start_only_window_kept(self) -> None:
        assert parse_windows([{"start": "09:00"}]) == (TimeWindow(time(9, 0), None),)

    def test_start_only_window_covers_one_duration(self) -> None:
        window = TimeWindow(time(9, 0))
        start, end = window.bounds_on(date(2025, 11, 3), SAO_PAULO, timedelta(minutes=45))
        assert end - start == timedelta(minutes=45)


class TestParseDaySchedule:
    def test_enabled_must_be_real_true(self) -> None:
        windows = [{"start": "09:00", "end": "12:00"}]
        assert parse_day_schedule({"enabled": True, "timeSlots": windows}).is_open
        assert not parse_day_schedule({"enabled": "true", "timeSlots": windows}).is_open
        assert not parse_day_schedule({"enabled": 1, "timeSlots": windows}).is_open

    def test_window_aliases(self) -> None:
        windows = [{"start": "09:00", "end": "12:00"}]
        assert parse_day_schedule({"enabled": True, "time_slots": windows}).is_open
        assert parse_day_schedule({"enabled": True, "windows": windows}).is_open

    def test_enabled_without_windows_is_closed(self) -> None:
        assert not parse_day_schedule({"enabled": True, "timeSlots": []}).is_open

    def test_working_hours_maps_weekday_names(self) -> None:
        template = parse_working_hours(
            {"monday": {"enabled": True, "timeSlots": [{"start": "09:00", "end": "10:00"}]}}
        )
        assert template.for_weekday(0).is_open
        assert not template.for_weekday(1).is_open
        assert not parse_working_hours(None).for_weekday(0).is_open


class TestDateOverrides:
    def test_normalizes_and_skips_bad_dates(self) -> None:
        overrides = parse_date_overrides(
            [
                {"date": "12/25/2025", "type": "unavailable"},
                {"date": "2025-12-26T00:00:00Z", "type": "available", "timeSlots": [{"start": "10:00", "end": "12:00"}]},
                {"date": "someday", "type": "unavailable"},
                {"date": "2025-12-27", "type": "holiday"},
            ]
        )
        assert [(o.day, o.kind) for o in overrides] == [
            (date(2025, 12, 25), OverrideKind.UNAVAILABLE),
            (date(2025, 12, 26), OverrideKind.AVAILABLE),
        ]
        assert overrides[1].windows == (TimeWindow(time(10, 0), time(12, 0)),)

    def test_available_override_replaces_template_for_that_date_only(self) -> None:
        schedule = ResourceSchedule.from_raw(
            resource_id=uuid4(),
            working_hours={"friday": {"enabled": True, "timeSlots": [{"start": "08:00", "end": "18:00"}]}},
            date_overrides=[
                {"date": "2025-12-26", "type": "available", "timeSlots": [{"start": "10:00", "end": "11:00"}]},
            ],
            timezone_name="America/Sao_Paulo",
            slot_duration_minutes=60,
        )
        assert schedule.effective_day(date(2025, 12, 26)).windows == (TimeWindow(time(10, 0), time(11, 0)),)
        assert schedule.effective_day(date(2026, 1, 2)).windows == (TimeWindow(time(8, 0), time(18, 0)),)

    def test_unavailable_wins_over_available(self) -> None:
        schedule = ResourceSchedule.from_raw(
            resource_id=uuid4(),
            working_hours=None,
            date_overrides=[
                {"date": "2025-12-24", "type": "available", "timeSlots": [{"start": "10:00", "end": "11:00"}]},
                {"date": "2025-12-24", "type": "unavailable"},
            ],
            timezone_name=None,
            slot_duration_minutes=None,
        )
        assert schedule.is_blacklisted(date(2025, 12, 24))
        assert schedule.timezone.key == "America/Sao_Paulo"
        assert schedule.slot_duration == timedelta(minutes=60)


class TestConflictIndex:
    def test_only_scheduled_blocks(self) -> None:
        index = ConflictIndex.from_intervals(
            [
                BookedInterval(_utc(2025, 1, 1, 10), _utc(2025, 1, 1, 11), AppointmentStatus.CANCELLED),
                BookedInterval(_utc(2025, 1, 1, 12), _utc(2025, 1, 1, 13)),
            ]
        )
        assert len(index) == 1
        assert not index.conflicts(_utc(2025, 1, 1, 10), _utc(2025, 1, 1, 11))
        assert index.conflicts(_utc(2025, 1, 1, 12, 30), _utc(2025, 1, 1, 13, 30))

    def test_touching_boundaries_do_not_conflict(self) -> None:
        index = ConflictIndex.from_intervals([BookedInterval(_utc(2025, 1, 1, 10), _utc(2025, 1, 1, 11))])
        assert not index.conflicts(_utc(2025, 1, 1, 9), _utc(2025, 1, 1, 10))
        assert not index.conflicts(_utc(2025, 1, 1, 11), _utc(2025, 1, 1, 12))
        assert index.conflicts(_utc(2025, 1, 1, 9, 30), _utc(2025, 1, 1, 10, 30))
