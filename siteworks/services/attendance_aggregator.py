"""
Attendance aggregation.
Folds daily check-in/check-out records into a weekly regular/overtime split.
"""
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from ..config import settings
from .time_rules import hours_between, round_hours, week_bounds


ZERO = Decimal("0")


class AttendanceLike(Protocol):
    date: date
    check_in: Optional[time]
    check_out: Optional[time]


@dataclass(frozen=True)
class AttendanceEntry:
    date: date
    check_in: Optional[time] = None
    check_out: Optional[time] = None


@dataclass(frozen=True)
class DayBreakdown:
    date: date
    check_in: time
    check_out: time
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "total_hours": float(self.total_hours),
            "regular_hours": float(self.regular_hours),
            "overtime_hours": float(self.overtime_hours),
        }


@dataclass(frozen=True)
class WeeklyAggregate:
    week_start_date: date
    week_end_date: date
    daily_breakdown: List[DayBreakdown] = field(default_factory=list)
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    total_hours: Decimal = ZERO


def split_day(total_hours: Decimal, threshold_hours: Decimal):
    """(regular, overtime) for one day's hours."""
    regular = min(total_hours, threshold_hours)
    overtime = max(ZERO, total_hours - threshold_hours)
    return round_hours(regular), round_hours(overtime)


def _payable_hours(raw_hours: Decimal, break_minutes: int, break_min_shift_hours: Decimal) -> Decimal:
    if break_minutes and raw_hours >= break_min_shift_hours:
        return round_hours(max(ZERO, raw_hours - Decimal(break_minutes) / Decimal(60)))
    return raw_hours


def aggregate(
    records: Iterable[AttendanceLike],
    week_start_date: date,
    threshold_hours: Optional[float] = None,
    unpaid_break_min: Optional[int] = None,
    break_min_shift_hours: Optional[float] = None,
) -> WeeklyAggregate:
    """
    Aggregate attendance for the 7-day window starting at `week_start_date`.

    Records outside the window, without a check-out (in progress) or with a
    check-out earlier than check-in are left out. Several records on the same
    date are folded into one breakdown row whose hours are their sum.

    Args:
        records: Attendance records exposing date, check_in and check_out
        week_start_date: First day of the window
        threshold_hours: Regular hours per day (default from settings)
        unpaid_break_min: Break deducted from a qualifying day (default from settings)
        break_min_shift_hours: Minimum day length for the break to apply (default from settings)
    """
    if threshold_hours is None:
        threshold_hours = settings.overtime_threshold_hours
    if unpaid_break_min is None:
        unpaid_break_min = settings.unpaid_break_min
    if break_min_shift_hours is None:
        break_min_shift_hours = settings.break_min_shift_hours
    threshold = Decimal(str(threshold_hours))
    break_floor = Decimal(str(break_min_shift_hours))

    week_start, week_end = week_bounds(week_start_date)

    by_day: Dict[date, List[AttendanceLike]] = {}
    for record in records:
        if record.date < week_start or record.date > week_end:
            continue
        if record.check_in is None or record.check_out is None:
            continue
        if hours_between(record.check_in, record.check_out) is None:
            continue
        by_day.setdefault(record.date, []).append(record)

    breakdown = []
    for day in sorted(by_day):
        day_records = by_day[day]
        raw = sum((hours_between(r.check_in, r.check_out) for r in day_records), ZERO)
        total = _payable_hours(raw, unpaid_break_min, break_floor)
        regular, overtime = split_day(total, threshold)
        breakdown.append(DayBreakdown(
            date=day,
            check_in=min(r.check_in for r in day_records),
            check_out=max(r.check_out for r in day_records),
            total_hours=round_hours(total),
            regular_hours=regular,
            overtime_hours=overtime,
        ))

    regular_hours = sum((d.regular_hours for d in breakdown), ZERO)
    overtime_hours = sum((d.overtime_hours for d in breakdown), ZERO)
    return WeeklyAggregate(
        week_start_date=week_start,
        week_end_date=week_end,
        daily_breakdown=breakdown,
        regular_hours=round_hours(regular_hours),
        overtime_hours=round_hours(overtime_hours),
        total_hours=round_hours(regular_hours + overtime_hours),
    )
