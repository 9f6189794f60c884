"""Pure scheduling rules shared by the availability engine and booking service.

Nothing here touches the database: callers load working hours, closure
periods, bookings and pricing tiers and hand them in. Working hours and
closure dates are wall-clock values in the business timezone; every
returned datetime is timezone-aware UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from slotbook.models.working_hours import WeekDay
from slotbook.schemas.availability import (
    STATUS_BY_CONFLICT,
    ConflictType,
    SlotStatus,
)

ALLOWED_SLOT_DURATIONS = (15, 30, 45, 60)
DEFAULT_SLOT_DURATION = 60
COURT_SLOT_MINUTES = 60
HOLD_CELL_MINUTES = 15
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Interval = tuple[time, time]


def resolve_slot_duration(
    explicit: Optional[int], service_durations: Iterable[int]
) -> int:
    """Grid step for a business.

    An explicit setting wins. Otherwise the allowed step closest to the
    shortest service is used (the smaller step on a tie), and 60 minutes
    when the business has no services yet.
    """
    if explicit:
        return explicit

    durations = [d for d in service_durations if d and d > 0]
    if not durations:
        return DEFAULT_SLOT_DURATION

    shortest = min(durations)
    return min(ALLOWED_SLOT_DURATIONS, key=lambda step: (abs(step - shortest), step))


def weekday_name(day: date) -> str:
    return WeekDay(day.weekday()).name


def day_intervals(rows: Iterable, day: date) -> list[Interval]:
    """Sorted working intervals of ``rows`` that apply to ``day``'s weekday."""
    name = weekday_name(day)
    return sorted(
        (row.start_time, row.end_time)
        for row in rows
        if row.weekday == name and row.start_time < row.end_time
    )


def intersect_intervals(a: Sequence[Interval], b: Sequence[Interval]) -> list[Interval]:
    """Intersection of two sorted, non-overlapping interval lists."""
    result = []
    i = j = 0
    while i < len(a) and j < len(b):
        start = max(a[i][0], b[j][0])
        end = min(a[i][1], b[j][1])
        if start < end:
            result.append((start, end))
        if a[i][1] < b[j][1]:
            i += 1
        else:
            j += 1
    return result


def local_bounds(day: date, interval: Interval) -> tuple[datetime, datetime]:
    """Naive local datetimes of an interval; ``time.max`` ends at next midnight."""
    start = datetime.combine(day, interval[0])
    if interval[1] == time.max:
        end = datetime.combine(day + timedelta(days=1), time.min)
    else:
        end = datetime.combine(day, interval[1])
    return start, end


def localize(local: datetime, tz: ZoneInfo) -> datetime:
    """Naive wall-clock datetime in ``tz`` -> aware UTC."""
    return local.replace(tzinfo=tz).astimezone(timezone.utc)


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Aware datetime -> naive wall-clock datetime in ``tz``."""
    return moment.astimezone(tz).replace(tzinfo=None)


def ensure_aware(moment: datetime, tz: ZoneInfo) -> datetime:
    """Naive input is read as business-local time."""
    if moment.tzinfo is None:
        return localize(moment, tz)
    return moment.astimezone(timezone.utc)


def day_window(first: date, last: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds covering local days ``first``..``last`` inclusive."""
    return (
        localize(datetime.combine(first, time.min), tz),
        localize(datetime.combine(last + timedelta(days=1), time.min), tz),
    )


def generate_slot_starts(
    day: date, intervals: Sequence[Interval], step: int, duration: int
) -> list[datetime]:
    """Naive local starts stepping by ``step`` that fit ``duration`` inside one interval."""
    starts = set()
    step_delta = timedelta(minutes=step)
    length = timedelta(minutes=duration)
    for interval in intervals:
        cursor, end = local_bounds(day, interval)
        while cursor + length <= end:
            starts.add(cursor)
            cursor += step_delta
    return sorted(starts)


def fits_working_hours(
    local_start: datetime, duration: int, intervals: Sequence[Interval]
) -> bool:
    """True when the booking lies entirely inside a single working interval."""
    local_end = local_start + timedelta(minutes=duration)
    for interval in intervals:
        start, end = local_bounds(local_start.date(), interval)
        if start <= local_start and local_end <= end:
            return True
    return False


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open interval overlap: touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def local_dates_spanned(start: datetime, end: datetime, tz: ZoneInfo) -> tuple[date, date]:
    first = to_local(start, tz).date()
    last = to_local(end - timedelta(microseconds=1), tz).date()
    return first, max(first, last)


def closure_blocks(
    periods: Iterable, start: datetime, end: datetime, tz: ZoneInfo
) -> bool:
    """True when any closure period's inclusive local dates touch [start, end)."""
    first, last = local_dates_spanned(start, end, tz)
    return any(p.start_date <= last and p.end_date >= first for p in periods)


def timing_conflicts(
    start: datetime,
    now: datetime,
    min_lead: timedelta,
    max_advance_days: Optional[int] = None,
) -> list[ConflictType]:
    """Conflicts coming only from when the booking starts relative to ``now``."""
    if start < now:
        return [ConflictType.PAST]

    conflicts = []
    if start < now + min_lead:
        conflicts.append(ConflictType.LEAD_TIME_VIOLATION)
    if max_advance_days is not None and start > now + timedelta(days=max_advance_days):
        conflicts.append(ConflictType.ADVANCE_BOOKING_VIOLATION)
    return conflicts


def slot_status(conflicts: Sequence[ConflictType]) -> SlotStatus:
    for conflict, status in STATUS_BY_CONFLICT:
        if conflict in conflicts:
            return status
    return SlotStatus.AVAILABLE


def tier_for_hour(pricing: Iterable, hour: int):
    """First pricing tier covering ``hour``, or None."""
    for tier in pricing:
        if tier.start_hour <= hour < tier.end_hour:
            return tier
    return None


def court_price(pricing: Sequence, local_start: datetime, duration: int) -> Decimal:
    """Sum of the hourly tier prices; hours outside every tier cost nothing."""
    total = Decimal("0")
    for offset in range(0, duration, COURT_SLOT_MINUTES):
        hour = (local_start + timedelta(minutes=offset)).hour
        tier = tier_for_hour(pricing, hour)
        if tier is not None:
            total += Decimal(tier.price)
    return total


def hold_cells(start: datetime, end: datetime) -> list[datetime]:
    """Quarter-hour cells touched by [start, end), used as slot-hold keys.

    Cells sit on a fixed UTC grid, so two overlapping intervals always share
    a cell whatever their start minute.
    """
    cell = timedelta(minutes=HOLD_CELL_MINUTES)
    cursor = EPOCH + ((start - EPOCH) // cell) * cell
    cells = []
    while cursor < end:
        cells.append(cursor)
        cursor += cell
    return cells


def parse_clock(value: str) -> time:
    """Parse "HH:MM"; "24:00" means end of day."""
    try:
        hours, minutes = (int(part) for part in value.split(":"))
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    if hours == 24 and minutes == 0:
        return time.max
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return time(hours, minutes)


def format_clock(value: time) -> str:
    if value == time.max:
        return "24:00"
    return value.strftime("%H:%M")
