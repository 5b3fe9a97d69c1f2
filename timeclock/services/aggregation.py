"""
Totals aggregation and timesheet row projection.

Windows are relative to an injected reference instant:
- today: local midnight -> reference
- yesterday: previous local midnight -> local midnight
- this_week: reference minus 7 days -> reference (rolling)
- this_month: reference minus one calendar month -> reference (rolling)
- all_time: ALL_TIME_FLOOR local midnight -> reference

A shift counts in full toward every window containing its clock-in,
even when it runs past the window's end.
"""
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple, Union

import structlog

from ..config import settings
from ..schemas.clocking import (
    WINDOW_NAMES,
    AggregateBucket,
    DateRange,
    ExportRow,
    Shift,
    ShiftType,
)
from .time_rules import (
    days_in_range,
    ensure_utc,
    local_date,
    local_midnight,
    subtract_months,
    utc_now,
)

logger = structlog.get_logger(__name__)

Window = Tuple[datetime, datetime]


def window_bounds(
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    all_time_floor: Optional[date] = None,
) -> Dict[str, Window]:
    """Half-open [start, end) UTC bounds of every named window."""
    reference_instant = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
    if all_time_floor is None:
        all_time_floor = settings.all_time_floor

    today = local_date(reference_instant, timezone_str)
    midnight = local_midnight(today, timezone_str)
    return {
        "today": (midnight, reference_instant),
        "yesterday": (local_midnight(today - timedelta(days=1), timezone_str), midnight),
        "this_week": (reference_instant - timedelta(days=7), reference_instant),
        "this_month": (subtract_months(reference_instant, 1, timezone_str), reference_instant),
        "all_time": (local_midnight(all_time_floor, timezone_str), reference_instant),
    }


def aggregate(
    shifts: Iterable[Shift],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
) -> AggregateBucket:
    """
    Sum shift hours into the named windows.
    Empty input gives a zero-filled bucket.
    """
    bounds = window_bounds(reference_instant, timezone_str)
    totals = {name: 0.0 for name in WINDOW_NAMES}
    for shift in shifts:
        for name in WINDOW_NAMES:
            start, end = bounds[name]
            if start <= shift.clock_in < end:
                totals[name] += shift.duration_hours
    return AggregateBucket(**totals)


def aggregate_by_user(
    shifts_by_user: Dict[str, List[Shift]],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
) -> Dict[str, AggregateBucket]:
    reference_instant = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
    return {
        user_id: aggregate(shifts, reference_instant, timezone_str)
        for user_id, shifts in shifts_by_user.items()
    }


def aggregate_all_users(
    shifts_by_user: Dict[str, List[Shift]],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
) -> AggregateBucket:
    """Company-wide totals for the admin view."""
    return aggregate(
        (shift for shifts in shifts_by_user.values() for shift in shifts),
        reference_instant,
        timezone_str,
    )


def _row_comment(best: Shift, count: int) -> str:
    notes = []
    if best.is_leave_day:
        notes.append("Leave Day")
    if best.multi_day_span:
        notes.append("Multi-day shift")
    if count > 1:
        notes.append(f"{count} shifts recorded; longest shown")
    return "; ".join(notes)


def to_export_rows(
    shifts: Iterable[Shift],
    date_range: Union[DateRange, Tuple[date, date]],
    timezone_str: Optional[str] = None,
    user_id: Optional[str] = None,
) -> List[ExportRow]:
    """
    Project one user's shifts onto one row per local calendar day.

    Each day gets the longest closed or leave shift that started on it
    (earliest clock-in on ties), or a zero-hour placeholder, so the
    timesheet has no gaps and no duplicate days. Open shifts are skipped.
    """
    if isinstance(date_range, DateRange):
        start, end = date_range.start, date_range.end
    else:
        start, end = date_range

    shifts = list(shifts)
    if user_id is None:
        user_id = shifts[0].user_id if shifts else ""

    if start > end:
        logger.warning("inverted_export_range", start=start.isoformat(), end=end.isoformat())
        return []

    by_day: Dict[date, List[Shift]] = {}
    for shift in sorted(shifts, key=lambda s: s.clock_in):
        if shift.is_open:
            continue
        by_day.setdefault(local_date(shift.clock_in, timezone_str), []).append(shift)

    rows: List[ExportRow] = []
    for day in days_in_range(start, end):
        candidates = by_day.get(day, [])
        if not candidates:
            rows.append(ExportRow(user_id=user_id, day=day))
            continue
        best = max(candidates, key=lambda s: s.duration_hours)
        rows.append(
            ExportRow(
                user_id=user_id,
                day=day,
                clock_in=best.clock_in,
                clock_out=best.clock_out,
                duration_hours=best.duration_hours,
                shift_type=ShiftType.leave_day if best.is_leave_day else ShiftType.regular,
                comment=_row_comment(best, len(candidates)),
                is_leave_day=best.is_leave_day,
                multi_day_span=best.multi_day_span,
                is_placeholder=False,
                shift_count=len(candidates),
            )
        )
    return rows


def timesheet_total_hours(rows: Iterable[ExportRow]) -> float:
    return sum(row.duration_hours for row in rows)
