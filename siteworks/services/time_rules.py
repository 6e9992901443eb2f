"""
Time rules for scheduling and timesheets.
Closed date-interval math, day splitting, time-of-day durations and week bounds.
All functions are pure; dates carry no time-of-day.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
import pytz

from ..config import settings


HOURS = Decimal("0.01")
MONEY = Decimal("0.01")


def overlaps(
    a_start: date,
    a_end: Optional[date],
    b_start: date,
    b_end: Optional[date],
) -> bool:
    """
    Check if two closed date intervals share at least one day.

    Args:
        a_start: First interval start (inclusive)
        a_end: First interval end (inclusive), None = unbounded
        b_start: Second interval start (inclusive)
        b_end: Second interval end (inclusive), None = unbounded

    Returns:
        True if the intervals overlap
    """
    # Two closed intervals overlap if: start1 <= end2 AND start2 <= end1
    a_before_b_ends = b_end is None or a_start <= b_end
    b_before_a_ends = a_end is None or b_start <= a_end
    return a_before_b_ends and b_before_a_ends


def overlap_window(
    a_start: date,
    a_end: Optional[date],
    b_start: date,
    b_end: Optional[date],
) -> Optional[Tuple[date, Optional[date]]]:
    """
    Get the shared part of two closed date intervals.

    Returns:
        (start, end) of the overlap, end None when both intervals are unbounded,
        or None if they do not overlap
    """
    if not overlaps(a_start, a_end, b_start, b_end):
        return None
    start = max(a_start, b_start)
    ends = [d for d in (a_end, b_end) if d is not None]
    end = min(ends) if ends else None
    return start, end


def days_between(start: date, end: date) -> int:
    """Number of calendar days in the closed interval [start, end]; 0 if end < start."""
    return max(0, (end - start).days + 1)


def split_into_days(start: date, end: date) -> List[date]:
    """Every date of the closed interval [start, end], in order."""
    return [start + timedelta(days=offset) for offset in range(days_between(start, end))]


def hours_between(check_in: time, check_out: time) -> Optional[Decimal]:
    """
    Time-of-day difference in hours, rounded to 2 decimals.

    A check-out earlier than check-in is not wrapped to the next day;
    None is returned so the caller can exclude the record.
    """
    if check_out < check_in:
        return None
    anchor = date(2000, 1, 1)
    diff = datetime.combine(anchor, check_out) - datetime.combine(anchor, check_in)
    return round_hours(Decimal(int(diff.total_seconds())) / Decimal(3600))


def round_hours(value: Decimal) -> Decimal:
    return Decimal(value).quantize(HOURS, rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


def is_week_start(day: date, weekday: Optional[int] = None) -> bool:
    """
    Check that a date falls on the designated week-start weekday.

    Args:
        day: Date to check
        weekday: 0 = Monday ... 6 = Sunday (default from settings)
    """
    if weekday is None:
        weekday = settings.week_start_weekday
    return day.weekday() == weekday


def week_bounds(week_start: date) -> Tuple[date, date]:
    """(week_start, week_start + 6 days)"""
    return week_start, week_start + timedelta(days=6)


def today_local(timezone_str: Optional[str] = None) -> date:
    """
    Current calendar date in the given timezone.

    Args:
        timezone_str: Timezone string (e.g., "America/Vancouver"), default from settings
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return datetime.now(tz).date()
