"""
Shift anomaly detection.
Pure filters over reconstructed shifts; notification delivery lives elsewhere.
"""
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from ..config import settings
from ..schemas.clocking import Anomalies, Shift
from .time_rules import ensure_utc, local_date, local_midnight, utc_now


def _all_shifts(shifts_by_user: Dict[str, List[Shift]]) -> Iterable[Shift]:
    for shifts in shifts_by_user.values():
        yield from shifts


def detect_anomalies(
    shifts_by_user: Dict[str, List[Shift]],
    long_shift_threshold_hours: Optional[float] = None,
) -> Anomalies:
    """
    Collect shifts that need attention.

    - unclosed_shifts: shifts still open
    - long_shifts: closed regular shifts lasting at least the threshold (default 12h)
    - multi_day_shifts: closed shifts whose clock-out falls on a later calendar day
    - negative_duration_shifts: shifts whose clock-out preceded the clock-in
    """
    if long_shift_threshold_hours is None:
        long_shift_threshold_hours = settings.long_shift_threshold_hours

    anomalies = Anomalies()
    for shift in _all_shifts(shifts_by_user):
        if shift.is_open:
            anomalies.unclosed_shifts.append(shift)
        elif not shift.is_leave_day and shift.duration_hours >= long_shift_threshold_hours:
            anomalies.long_shifts.append(shift)
        if shift.multi_day_span:
            anomalies.multi_day_shifts.append(shift)
        if shift.negative_duration:
            anomalies.negative_duration_shifts.append(shift)
    return anomalies


def shifts_started_between(
    shifts_by_user: Dict[str, List[Shift]],
    start: datetime,
    end: datetime,
) -> Dict[str, List[Shift]]:
    """Keep only shifts whose clock-in falls in [start, end)."""
    start, end = ensure_utc(start), ensure_utc(end)
    return {
        user_id: [s for s in shifts if start <= s.clock_in < end]
        for user_id, shifts in shifts_by_user.items()
    }


def shifts_started_today(
    shifts_by_user: Dict[str, List[Shift]],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
) -> Dict[str, List[Shift]]:
    reference_instant = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
    day = local_date(reference_instant, timezone_str)
    return shifts_started_between(
        shifts_by_user,
        local_midnight(day, timezone_str),
        local_midnight(day + timedelta(days=1), timezone_str),
    )
