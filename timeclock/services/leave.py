"""
Leave booking expansion.
An approved leave request becomes one synthetic clock-in/clock-out pair per
day, one minute apart at local midnight. Reconstruction credits each pair as
a full workday.
"""
from datetime import date, timedelta
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..schemas.clocking import ClockAction, DateRange, LeaveRequestRecord, RawEvent
from .time_rules import days_in_range, local_midnight

LEAVE_BRACKET = timedelta(minutes=1)
LEAVE_LOCATION = "Leave Day"


def leave_day_events(
    user_id: str,
    day: date,
    timezone_str: Optional[str] = None,
    source_id: Optional[str] = None,
) -> List[RawEvent]:
    """The clock-in/clock-out pair that books `day` as leave."""
    start = local_midnight(day, timezone_str)
    prefix = f"{source_id}-{day.isoformat()}" if source_id else None
    return [
        RawEvent(
            id=f"{prefix}-in" if prefix else None,
            user_id=user_id,
            action=ClockAction.clock_in,
            timestamp=start,
            location=LEAVE_LOCATION,
            is_leave_day=True,
        ),
        RawEvent(
            id=f"{prefix}-out" if prefix else None,
            user_id=user_id,
            action=ClockAction.clock_out,
            timestamp=start + LEAVE_BRACKET,
            location=LEAVE_LOCATION,
            is_leave_day=True,
        ),
    ]


def _as_record(request: Union[LeaveRequestRecord, Mapping[str, Any], Any]) -> LeaveRequestRecord:
    if isinstance(request, LeaveRequestRecord):
        return request
    if isinstance(request, Mapping):
        return LeaveRequestRecord.model_validate(request)
    return LeaveRequestRecord.model_validate(request, from_attributes=True)


def expand_leave_request(
    request: Union[LeaveRequestRecord, Mapping[str, Any], Any],
    clip: Optional[Union[DateRange, Tuple[date, date]]] = None,
    timezone_str: Optional[str] = None,
) -> List[RawEvent]:
    """
    Expand an approved leave request over its inclusive date span.

    Args:
        request: LeaveRequestRecord, a mapping, or an ORM row with the same attributes
        clip: optional date range the expansion is limited to
        timezone_str: zone whose midnight anchors each leave day

    Returns:
        Leave-day events; empty for requests that are not approved
    """
    record = _as_record(request)
    if record.status != "approved":
        return []

    start, end = record.start_date, record.end_date
    if clip is not None:
        clip_start, clip_end = (clip.start, clip.end) if isinstance(clip, DateRange) else clip
        start, end = max(start, clip_start), min(end, clip_end)

    events: List[RawEvent] = []
    for day in days_in_range(start, end):
        events.extend(leave_day_events(record.user_id, day, timezone_str, record.id))
    return events
