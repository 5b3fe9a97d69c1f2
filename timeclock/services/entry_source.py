"""
Read side of the clock entry store.
Turns stored rows into the plain records the pipeline consumes.
"""
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from ..models.models import ClockEntry, LeaveRequest, User
from ..schemas.clocking import DateRange, RawEvent, UserProfile
from .leave import expand_leave_request
from .time_rules import ensure_utc

# Events this far before a window are loaded too, so a shift that started
# just before the window can still find its clock-in
PAIRING_LOOKBACK = timedelta(days=1)


def _entry_record(entry: ClockEntry) -> dict:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "action": entry.action,
        "timestamp": entry.timestamp,
        "location": entry.location,
        "latitude": entry.latitude,
        "longitude": entry.longitude,
        "is_leave_day": entry.is_leave_day,
    }


def load_raw_events(
    db: Session,
    user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[dict]:
    """
    Clock entries as RawEvent-shaped dicts, oldest first.

    Args:
        db: Database session
        user_id: limit to one user (default: everyone)
        start: inclusive lower bound on timestamp
        end: exclusive upper bound on timestamp
    """
    query = db.query(ClockEntry)
    if user_id:
        query = query.filter(ClockEntry.user_id == user_id)
    if start is not None:
        query = query.filter(ClockEntry.timestamp >= ensure_utc(start))
    if end is not None:
        query = query.filter(ClockEntry.timestamp < ensure_utc(end))
    return [_entry_record(e) for e in query.order_by(ClockEntry.timestamp.asc()).all()]


def load_user_profiles(db: Session, user_ids: Optional[Iterable[str]] = None) -> Dict[str, UserProfile]:
    query = db.query(User)
    if user_ids is not None:
        query = query.filter(User.id.in_(list(user_ids)))
    return {
        u.id: UserProfile(
            id=u.id,
            name=u.name or "",
            surname=u.surname or "",
            email=u.email or "",
            role=u.role or "user",
        )
        for u in query.all()
    }


def load_leave_events(
    db: Session,
    user_id: str,
    day_range: DateRange,
    timezone_str: Optional[str] = None,
) -> List[RawEvent]:
    """Leave-day events for every approved request overlapping the range."""
    requests = db.query(LeaveRequest).filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.status == "approved",
        and_(LeaveRequest.start_date <= day_range.end, LeaveRequest.end_date >= day_range.start),
    ).order_by(LeaveRequest.start_date.asc()).all()

    events: List[RawEvent] = []
    for request in requests:
        events.extend(expand_leave_request(request, clip=day_range, timezone_str=timezone_str))
    return events
