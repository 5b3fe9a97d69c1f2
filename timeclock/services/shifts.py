"""
Shift reconstruction service.
Pairs each user's clock events into shifts.

Rules:
- events are processed per user in (timestamp, input order) order
- a clock-out pairs with the pending clock-in only when strictly later
- clock-outs with nothing to pair are orphans and are dropped
- a second clock-in before a clock-out follows DoubleClockInPolicy
- a clock-in still pending at the end becomes the single open shift
- leave-day pairs are credited a fixed number of hours
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from ..config import settings
from ..schemas.clocking import (
    ClockAction,
    Coordinates,
    DoubleClockInPolicy,
    NormalizedEvent,
    PipelineDiagnostics,
    RawEvent,
    ReconstructionResult,
    Shift,
)
from .time_rules import ensure_utc, hours_between, is_same_day, utc_now

logger = structlog.get_logger(__name__)


def _coordinates(event: Optional[RawEvent]) -> Optional[Coordinates]:
    if event is None or event.latitude is None or event.longitude is None:
        return None
    return Coordinates(latitude=event.latitude, longitude=event.longitude)


def _make_shift(
    clock_in: RawEvent,
    clock_out_at: datetime,
    clock_out: Optional[RawEvent],
    is_open: bool,
    timezone_str: Optional[str],
) -> Shift:
    hours = hours_between(clock_in.timestamp, clock_out_at)
    negative = hours < 0
    if negative:
        logger.warning(
            "negative_shift_duration_clamped",
            user_id=clock_in.user_id,
            clock_in=clock_in.timestamp.isoformat(),
            clock_out=clock_out_at.isoformat(),
        )
    return Shift(
        user_id=clock_in.user_id,
        clock_in=clock_in.timestamp,
        clock_out=None if is_open else clock_out_at,
        clock_in_location=clock_in.location,
        clock_out_location=clock_out.location if clock_out is not None else None,
        clock_in_coordinates=_coordinates(clock_in),
        clock_out_coordinates=_coordinates(clock_out),
        clock_in_id=clock_in.id,
        clock_out_id=clock_out.id if clock_out is not None else None,
        duration_hours=max(hours, 0.0),
        is_leave_day=False,
        multi_day_span=(not is_open) and not is_same_day(clock_in.timestamp, clock_out_at, timezone_str),
        negative_duration=negative,
    )


def build_shift(
    clock_in: RawEvent,
    clock_out: Optional[RawEvent] = None,
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
) -> Shift:
    """
    Build one regular shift from a clock-in and an optional clock-out.

    Without a clock-out the shift is open and its duration runs to
    reference_instant (default: now). A clock-out earlier than the
    clock-in gives a zero-hour shift with negative_duration set.
    """
    if clock_out is None:
        end = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
        return _make_shift(clock_in, end, None, True, timezone_str)
    return _make_shift(clock_in, clock_out.timestamp, clock_out, False, timezone_str)


def build_leave_shift(
    clock_in: RawEvent,
    clock_out: Optional[RawEvent] = None,
    leave_day_fixed_hours: Optional[float] = None,
) -> Shift:
    """A leave day counts as a full workday whatever its bracket length."""
    if leave_day_fixed_hours is None:
        leave_day_fixed_hours = settings.leave_day_fixed_hours
    return Shift(
        user_id=clock_in.user_id,
        clock_in=clock_in.timestamp,
        clock_out=clock_out.timestamp if clock_out is not None else clock_in.timestamp,
        clock_in_location=clock_in.location,
        clock_out_location=clock_out.location if clock_out is not None else clock_in.location,
        clock_in_id=clock_in.id,
        clock_out_id=clock_out.id if clock_out is not None else None,
        duration_hours=float(leave_day_fixed_hours),
        is_leave_day=True,
    )


def _pair_leave_days(
    events: List[NormalizedEvent],
    leave_day_fixed_hours: float,
    diagnostics: PipelineDiagnostics,
) -> List[Shift]:
    shifts: List[Shift] = []
    pending: Optional[NormalizedEvent] = None
    for event in events:
        if event.action == ClockAction.clock_in:
            if pending is not None:
                # Booked twice without a closing marker: still one credited day each
                shifts.append(build_leave_shift(pending, None, leave_day_fixed_hours))
                diagnostics.unpaired_leave_events += 1
            pending = event
        elif pending is not None and event.timestamp >= pending.timestamp:
            shifts.append(build_leave_shift(pending, event, leave_day_fixed_hours))
            pending = None
        else:
            diagnostics.unpaired_leave_events += 1
            logger.warning("orphan_leave_marker", user_id=event.user_id, timestamp=event.timestamp.isoformat())

    if pending is not None:
        shifts.append(build_leave_shift(pending, None, leave_day_fixed_hours))
        diagnostics.unpaired_leave_events += 1
    return shifts


def _pair_regular(
    events: List[NormalizedEvent],
    reference_instant: datetime,
    timezone_str: Optional[str],
    policy: DoubleClockInPolicy,
    diagnostics: PipelineDiagnostics,
) -> List[Shift]:
    shifts: List[Shift] = []
    pending: Optional[NormalizedEvent] = None

    for event in events:
        if event.action == ClockAction.clock_in:
            if pending is not None:
                if policy == DoubleClockInPolicy.auto_close and event.timestamp > pending.timestamp:
                    shifts.append(_make_shift(pending, event.timestamp, None, False, timezone_str))
                    diagnostics.auto_closed_shifts += 1
                    logger.info(
                        "clock_in_auto_closed",
                        user_id=event.user_id,
                        clock_in=pending.timestamp.isoformat(),
                        closed_at=event.timestamp.isoformat(),
                    )
                else:
                    diagnostics.superseded_clock_ins += 1
                    logger.warning(
                        "superseded_clock_in",
                        user_id=event.user_id,
                        dropped=pending.timestamp.isoformat(),
                        kept=event.timestamp.isoformat(),
                    )
            pending = event
            continue

        if pending is not None and event.timestamp > pending.timestamp:
            shifts.append(_make_shift(pending, event.timestamp, event, False, timezone_str))
            pending = None
        else:
            diagnostics.orphan_clock_outs += 1
            logger.warning("orphan_clock_out", user_id=event.user_id, timestamp=event.timestamp.isoformat())

    if pending is not None:
        shifts.append(_make_shift(pending, reference_instant, None, True, timezone_str))
    return shifts


def reconstruct_shifts(
    events: Iterable[NormalizedEvent],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    leave_day_fixed_hours: Optional[float] = None,
    double_clock_in_policy: Optional[str] = None,
) -> ReconstructionResult:
    """
    Rebuild every user's shifts from normalized clock events.

    Args:
        events: normalized events in any order, any mix of users
        reference_instant: "now" for open shift durations (default: current time)
        timezone_str: zone used to decide calendar days (default: TZ_DEFAULT)
        leave_day_fixed_hours: hours credited per leave day (default: LEAVE_DAY_FIXED_HOURS)
        double_clock_in_policy: DoubleClockInPolicy value (default: DOUBLE_CLOCK_IN_POLICY)

    Returns:
        ReconstructionResult mapping user id to shifts in clock-in order, plus counts
    """
    reference_instant = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
    if leave_day_fixed_hours is None:
        leave_day_fixed_hours = settings.leave_day_fixed_hours
    policy = DoubleClockInPolicy(double_clock_in_policy or settings.double_clock_in_policy)

    by_user: Dict[str, List[NormalizedEvent]] = {}
    for event in events:
        by_user.setdefault(event.user_id, []).append(event)

    diagnostics = PipelineDiagnostics()
    shifts_by_user: Dict[str, List[Shift]] = {}
    for user_id, user_events in by_user.items():
        ordered = sorted(user_events, key=lambda e: (e.timestamp, e.sequence))
        leave = [e for e in ordered if e.is_leave_day]
        regular = [e for e in ordered if not e.is_leave_day]

        shifts = _pair_leave_days(leave, leave_day_fixed_hours, diagnostics)
        shifts += _pair_regular(regular, reference_instant, timezone_str, policy, diagnostics)
        shifts.sort(key=lambda s: s.clock_in)
        diagnostics.negative_durations += sum(1 for s in shifts if s.negative_duration)
        shifts_by_user[user_id] = shifts

    return ReconstructionResult(shifts=shifts_by_user, diagnostics=diagnostics)


def reconstruct(
    events: Iterable[NormalizedEvent],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    leave_day_fixed_hours: Optional[float] = None,
    double_clock_in_policy: Optional[str] = None,
) -> Dict[str, List[Shift]]:
    return reconstruct_shifts(
        events,
        reference_instant=reference_instant,
        timezone_str=timezone_str,
        leave_day_fixed_hours=leave_day_fixed_hours,
        double_clock_in_policy=double_clock_in_policy,
    ).shifts


def latest_first(shifts: Iterable[Shift]) -> List[Shift]:
    """Display order used by the shift tables."""
    return sorted(shifts, key=lambda s: s.clock_in, reverse=True)
