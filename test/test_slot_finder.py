"""Tests for the slot search over resource schedules."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from booking_engine.availability.conflicts import ConflictIndex
from booking_engine.availability.schedule import AppointmentStatus, BookedInterval, ResourceSchedule
from booking_engine.availability.slot_finder import SlotFinder, candidate_intervals, slots_for_day
from booking_engine.config import Settings
from booking_engine.shared.exceptions import AppointmentStoreError

from fakes import FakeAppointmentStore, FrozenClock, InMemoryDatabase, weekly_hours

SAO_PAULO = ZoneInfo("America/Sao_Paulo")

# Sunday 2025-11-02 09:00 in Sao Paulo.
SUNDAY = datetime(2025, 11, 2, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2025, 11, 3)


def _local(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=SAO_PAULO)


def _schedule(
    working_hours: dict | None = None,
    overrides: list | None = None,
    duration: int = 60,
    tz: str = "America/Sao_Paulo",
) -> ResourceSchedule:
    return ResourceSchedule.from_raw(
        resource_id=uuid4(),
        working_hours=working_hours,
        date_overrides=overrides,
        timezone_name=tz,
        slot_duration_minutes=duration,
    )


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


def _finder(db: InMemoryDatabase, now: datetime = SUNDAY) -> SlotFinder:
    return SlotFinder(FakeAppointmentStore(db), FrozenClock(now))


def _book(db: InMemoryDatabase, schedule: ResourceSchedule, start: datetime, end: datetime, **kw) -> None:
    db.add_appointment(schedule.resource_id, start, end, **kw)


class TestCandidateGeneration:
    def test_steps_window_by_duration(self) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]), duration=90)
        starts = [s for s, _ in candidate_intervals(schedule, MONDAY)]
        assert starts == [_local(MONDAY, 9), _local(MONDAY, 10, 30)]

    def test_partial_tail_is_not_offered(self) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "11:30")]), duration=60)
        starts = [s for s, _ in candidate_intervals(schedule, MONDAY)]
        assert starts == [_local(MONDAY, 9), _local(MONDAY, 10)]

    def test_disabled_day_has_no_candidates(self) -> None:
        schedule = _schedule(weekly_hours(["tuesday"], [("09:00", "12:00")]))
        assert list(candidate_intervals(schedule, MONDAY)) == []

    def test_start_only_window_yields_one_slot(self) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", None)]), duration=30)
        assert list(candidate_intervals(schedule, MONDAY)) == [
            (_local(MONDAY, 9), _local(MONDAY, 9, 30)),
        ]

    def test_gap_between_adjacent_appointments_stays_open(self) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]))
        index = ConflictIndex.from_intervals(
            [
                BookedInterval(_local(MONDAY, 9), _local(MONDAY, 10)),
                BookedInterval(_local(MONDAY, 11), _local(MONDAY, 12)),
            ]
        )
        found = slots_for_day(schedule, MONDAY, index, SUNDAY)
        assert [s.start for s in found] == [_local(MONDAY, 10)]


class TestScenarios:
    @pytest.mark.asyncio
    async def test_overlapping_appointment_excludes_second_slot(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]), duration=90)
        _book(db, schedule, _local(MONDAY, 10, 30), _local(MONDAY, 12))

        slots = await _finder(db).slots_on_date(schedule, MONDAY)

        assert [s.start for s in slots] == [_local(MONDAY, 9)]
        assert slots[0].end == _local(MONDAY, 10, 30)
        assert slots[0].local_date == MONDAY
        assert not slots[0].is_fallback

        nxt = await _finder(db).next_slot(schedule, SUNDAY)
        assert nxt.start == _local(MONDAY, 9)

    @pytest.mark.asyncio
    async def test_unavailable_date_is_empty_regardless_of_template(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(
            weekly_hours(["monday", "tuesday", "wednesday", "thursday", "friday"], [("08:00", "18:00")]),
            overrides=[{"date": "2025-12-25", "type": "unavailable"}],
        )
        assert await _finder(db).slots_on_date(schedule, date(2025, 12, 25)) == []
        assert await _finder(db).slots_on_date(schedule, date(2025, 12, 26)) != []

    @pytest.mark.asyncio
    async def test_unavailable_date_in_other_format_is_still_blocked(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(
            weekly_hours(["thursday"], [("08:00", "18:00")]),
            overrides=[{"date": "12/25/2025", "type": "unavailable"}],
        )
        assert await _finder(db).slots_on_date(schedule, date(2025, 12, 25)) == []


class TestNextSlot:
    @pytest.mark.asyncio
    async def test_never_offers_today(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday", "tuesday"], [("09:00", "18:00")]))
        # Monday 06:00 local: today still has openings but search starts tomorrow.
        early_monday = datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc)
        slot = await _finder(db, early_monday).next_slot(schedule, early_monday)
        assert slot.local_date == date(2025, 11, 4)
        assert slot.start == _local(date(2025, 11, 4), 9)

    @pytest.mark.asyncio
    async def test_tomorrow_is_computed_in_resource_zone(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["tuesday", "wednesday"], [("09:00", "10:00")]))
        # 02:00 UTC on Tuesday is still Monday 23:00 in Sao Paulo: tomorrow is Tuesday.
        late_monday = datetime(2025, 11, 4, 2, 0, tzinfo=timezone.utc)
        slot = await _finder(db, late_monday).next_slot(schedule, late_monday)
        assert slot.local_date == date(2025, 11, 4)

    @pytest.mark.asyncio
    async def test_fallback_is_tagged(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(None)
        slot = await _finder(db).next_slot(schedule, SUNDAY)
        assert slot.is_fallback
        assert slot.local_date == date(2025, 11, 16)
        assert slot.start == _local(date(2025, 11, 16), 9)
        assert slot.end - slot.start == schedule.slot_duration

    @pytest.mark.asyncio
    async def test_matches_first_of_slots(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["wednesday", "friday"], [("14:00", "16:00")]))
        _book(db, schedule, _local(date(2025, 11, 5), 14), _local(date(2025, 11, 5), 15))
        finder = _finder(db)
        nxt = await finder.next_slot(schedule, SUNDAY)
        for k in (1, 3, 7):
            assert (await finder.slots(schedule, SUNDAY, k))[0] == nxt

    @pytest.mark.asyncio
    async def test_reads_appointments_once_per_candidate_day(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "17:00")]))
        await _finder(db).next_slot(schedule, SUNDAY)
        assert db.appointment_reads == 1


class TestSlots:
    @pytest.mark.asyncio
    async def test_properties_of_every_returned_slot(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(
            weekly_hours(["monday", "wednesday", "friday"], [("08:00", "12:00"), ("13:00", "17:00")]),
            overrides=[
                {"date": "2025-11-05", "type": "unavailable"},
                {"date": "2025-11-08", "type": "available", "timeSlots": [{"start": "10:00", "end": "12:00"}]},
            ],
        )
        _book(db, schedule, _local(MONDAY, 8, 30), _local(MONDAY, 10))
        _book(db, schedule, _local(MONDAY, 13), _local(MONDAY, 14), status=AppointmentStatus.CANCELLED)

        slots = await _finder(db).slots(schedule, SUNDAY, 40)

        assert slots == sorted(slots, key=lambda s: s.start)
        assert len({s.start for s in slots}) == len(slots)
        for slot in slots:
            assert slot.start > SUNDAY
            assert slot.local_date != date(2025, 11, 5)
            effective = schedule.effective_day(slot.local_date)
            local = slot.start.astimezone(SAO_PAULO)
            assert any(w.start <= local.time() and (w.end is None or local.time() < w.end) for w in effective.windows)
            for appt in db.appointments:
                if appt.status is AppointmentStatus.SCHEDULED:
                    assert not (slot.start < appt.end and slot.end > appt.start)

        monday_starts = [s.start for s in slots if s.local_date == MONDAY]
        assert _local(MONDAY, 8) not in monday_starts
        assert _local(MONDAY, 9) not in monday_starts
        assert _local(MONDAY, 13) in monday_starts
        assert any(s.local_date == date(2025, 11, 8) for s in slots)

    @pytest.mark.asyncio
    async def test_idempotent(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["tuesday", "thursday"], [("09:00", "12:00")]))
        _book(db, schedule, _local(date(2025, 11, 4), 10), _local(date(2025, 11, 4), 11))
        finder = _finder(db)
        first = await finder.slots(schedule, SUNDAY, 5)
        second = await finder.slots(schedule, SUNDAY, 5)
        assert first == second
        assert len(first) == 5

    @pytest.mark.asyncio
    async def test_appointment_from_previous_evening_blocks(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("00:00", "02:00")]))
        _book(db, schedule, _local(date(2025, 11, 2), 23), _local(MONDAY, 1))
        slots = await _finder(db).slots_on_date(schedule, MONDAY)
        assert [s.start for s in slots] == [_local(MONDAY, 1)]

    @pytest.mark.asyncio
    async def test_overlapping_windows_keep_earliest_first(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00"), ("09:30", "10:30")]))
        finder = _finder(db)

        two = await finder.slots(schedule, SUNDAY, 2)
        ten = await finder.slots(schedule, SUNDAY, 10)

        assert [s.start for s in ten] == [
            _local(MONDAY, 9),
            _local(MONDAY, 9, 30),
            _local(MONDAY, 10),
            _local(MONDAY, 11),
        ]
        assert two == ten[:2]

    @pytest.mark.asyncio
    async def test_zero_max_returns_empty(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]))
        assert await _finder(db).slots(schedule, SUNDAY, 0) == []


class TestSlotsOnDate:
    @pytest.mark.asyncio
    async def test_drops_past_instants(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]))
        # Monday 10:15 local
        now = datetime(2025, 11, 3, 13, 15, tzinfo=timezone.utc)
        slots = await _finder(db, now).slots_on_date(schedule, MONDAY)
        assert [s.start for s in slots] == [_local(MONDAY, 11)]

    @pytest.mark.asyncio
    async def test_spring_forward_gap_has_no_duplicate_slots(self, db: InMemoryDatabase) -> None:
        # 2025-03-09 02:00 does not exist in New York.
        schedule = _schedule(weekly_hours(["sunday"], [("01:00", "05:00")]), tz="America/New_York")
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)

        slots = await _finder(db, now).slots_on_date(schedule, date(2025, 3, 9))

        assert [s.start.astimezone(timezone.utc) for s in slots] == [
            datetime(2025, 3, 9, 6, tzinfo=timezone.utc),
            datetime(2025, 3, 9, 7, tzinfo=timezone.utc),
            datetime(2025, 3, 9, 8, tzinfo=timezone.utc),
        ]
        assert [f"{s.start:%H:%M}" for s in slots] == ["01:00", "03:00", "04:00"]
        for slot in slots:
            assert slot.end.astimezone(timezone.utc) - slot.start.astimezone(timezone.utc) == timedelta(hours=1)


class TestSlotsBefore:
    @pytest.mark.asyncio
    async def test_never_reaches_cutoff(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday", "tuesday", "wednesday"], [("09:00", "10:00")]))
        cutoff = date(2025, 11, 5)
        slots = await _finder(db).slots_before(schedule, cutoff, 10, from_=SUNDAY)
        assert [s.local_date for s in slots] == [date(2025, 11, 3), date(2025, 11, 4)]
        assert all(s.start < datetime.combine(cutoff, time(0), tzinfo=SAO_PAULO) for s in slots)

    @pytest.mark.asyncio
    async def test_limited_to_lookahead_window(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(
            None,
            overrides=[{"date": "2025-11-20", "type": "available", "timeSlots": [{"start": "09:00", "end": "11:00"}]}],
        )
        # 2025-11-20 is 18 days after Sunday: outside the 14-day window.
        slots = await _finder(db).slots_before(schedule, date(2025, 12, 31), 2, from_=SUNDAY)
        assert slots == []

    @pytest.mark.asyncio
    async def test_returns_at_most_max(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "17:00")]))
        slots = await _finder(db).slots_before(schedule, date(2025, 12, 1), 2, from_=SUNDAY)
        assert [s.start for s in slots] == [_local(MONDAY, 9), _local(MONDAY, 10)]


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]))
        db.fail_appointment_reads = RuntimeError("connection reset")
        with pytest.raises(AppointmentStoreError) as exc_info:
            await _finder(db).slots(schedule, SUNDAY, 3)
        assert exc_info.value.error_code == "APPOINTMENT_READ_FAILED"

    @pytest.mark.asyncio
    async def test_store_error_propagates_unchanged(self, db: InMemoryDatabase) -> None:
        schedule = _schedule(weekly_hours(["monday"], [("09:00", "12:00")]))
        original = AppointmentStoreError("down", error_code="CALENDAR_DOWN")
        db.fail_appointment_reads = original
        with pytest.raises(AppointmentStoreError) as exc_info:
            await _finder(db).next_slot(schedule, SUNDAY)
        assert exc_info.value is original


class TestFromSettings:
    def test_fallback_uses_configured_offset(self, test_settings: Settings) -> None:
        finder = SlotFinder.from_settings(FakeAppointmentStore(InMemoryDatabase()), test_settings)
        schedule = _schedule(None)
        fallback = finder.fallback_slot(schedule, SUNDAY)
        assert fallback.start - SUNDAY > timedelta(days=13)
