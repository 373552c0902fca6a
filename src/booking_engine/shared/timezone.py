"""
Timezone primitives.

Every calendar computation in the engine goes through these helpers so that
"which local date is this instant on" and "which instant is HH:MM on that
local date" are answered in the resource's own zone, never the process zone.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.shared.logging import get_logger

logger = get_logger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SLASH_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_zone(name: str | None, default: str = "America/Sao_Paulo") -> ZoneInfo:
    """Return the ZoneInfo for ``name``, falling back to ``default`` when unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone, using default", extra={"tz": name, "default": default})
    return ZoneInfo(default)


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None or instant.tzinfo.utcoffset(instant) is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def date_in_zone(instant: datetime, tz: tzinfo) -> date:
    """Calendar date of ``instant`` as seen in ``tz``."""
    return ensure_aware(instant).astimezone(tz).date()


def at_local(day: date, clock: time, tz: tzinfo) -> datetime:
    """Aware datetime for wall-clock ``clock`` on ``day`` in ``tz``."""
    return datetime.combine(day, clock.replace(tzinfo=None), tzinfo=tz)


def utc_offset_at(instant: datetime, tz: tzinfo) -> timedelta:
    """Offset of ``tz`` from UTC at ``instant`` (DST aware)."""
    offset = ensure_aware(instant).astimezone(tz).utcoffset()
    return offset if offset is not None else timedelta(0)


def local_day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` UTC range covering local ``day`` in ``tz``."""
    start = at_local(day, time(0, 0), tz)
    end = at_local(day + timedelta(days=1), time(0, 0), tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def normalize_date_string(raw: object) -> date | None:
    """Parse a stored date into a ``date``.

    Accepts ``YYYY-MM-DD``, ISO datetimes (date part) and ``MM/DD/YYYY``.
    A slash date whose first field is above 12 can only be ``DD/MM/YYYY``
    and is read that way. Returns None for anything else.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        return None

    value = raw.strip()
    if not value:
        return None

    if "T" in value:
        value = value.split("T", 1)[0]

    try:
        if _ISO_DATE.match(value):
            return date.fromisoformat(value)

        match = _SLASH_DATE.match(value)
        if match:
            first, second, year = (int(part) for part in match.groups())
            if first > 12:
                return date(year, second, first)
            return date(year, first, second)
    except ValueError:
        return None

    return None


def parse_clock(raw: object) -> time | None:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a ``time``; None when malformed."""
    if not isinstance(raw, str):
        return None
    parts = raw.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
        second = int(parts[2]) if len(parts) == 3 else 0
        return time(hour, minute, second)
    except ValueError:
        return None


def is_within_business_hours(
    now: datetime,
    tz: tzinfo,
    start_hour: int,
    end_hour: int,
    days: list[int],
) -> bool:
    """True when ``now`` falls on an allowed weekday and ``start_hour <= hour < end_hour``."""
    local = ensure_aware(now).astimezone(tz)
    return local.weekday() in days and start_hour <= local.hour < end_hour


def format_slot_display(start: datetime, tz: tzinfo) -> str:
    """Render a slot start as ``DD/MM/YYYY às HH:MM`` in ``tz``."""
    local = ensure_aware(start).astimezone(tz)
    return f"{local:%d/%m/%Y} às {local:%H:%M}"


def format_date_display(day: date) -> str:
    return f"{day:%d/%m/%Y}"
