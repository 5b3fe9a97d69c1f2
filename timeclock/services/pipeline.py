"""
End-to-end clocking pipeline.
Each call recomputes everything from the snapshot it is given:
raw events -> normalized events -> shifts -> anomalies / totals.
"""
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from ..config import settings
from ..schemas.clocking import ClockingReport, RawEvent, ReconstructionResult
from .aggregation import aggregate_all_users, aggregate_by_user
from .anomalies import detect_anomalies
from .formatting import on_duty_user_ids
from .normalizer import drop_duplicate_events, normalize_events
from .shifts import reconstruct_shifts
from .time_rules import ensure_utc, get_timezone, utc_now

logger = structlog.get_logger(__name__)


def shifts_from_raw(
    raw_events: Iterable[Union[RawEvent, Mapping[str, Any]]],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    leave_day_fixed_hours: Optional[float] = None,
    double_clock_in_policy: Optional[str] = None,
    dedupe: Optional[bool] = None,
) -> ReconstructionResult:
    """Normalize, optionally de-duplicate, and reconstruct; diagnostics are merged."""
    if dedupe is None:
        dedupe = settings.dedupe_events

    normalized = normalize_events(raw_events)
    events, diagnostics = normalized.events, normalized.diagnostics
    if dedupe:
        deduped = drop_duplicate_events(events)
        events, diagnostics = deduped.events, diagnostics.merge(deduped.diagnostics)

    reconstruction = reconstruct_shifts(
        events,
        reference_instant=reference_instant,
        timezone_str=timezone_str,
        leave_day_fixed_hours=leave_day_fixed_hours,
        double_clock_in_policy=double_clock_in_policy,
    )
    diagnostics = diagnostics.merge(reconstruction.diagnostics)
    if diagnostics.dropped_total or diagnostics.negative_durations:
        logger.info("clock_data_quality", **diagnostics.model_dump())
    return ReconstructionResult(shifts=reconstruction.shifts, diagnostics=diagnostics)


def build_report(
    raw_events: Iterable[Union[RawEvent, Mapping[str, Any]]],
    reference_instant: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    long_shift_threshold_hours: Optional[float] = None,
    leave_day_fixed_hours: Optional[float] = None,
    double_clock_in_policy: Optional[str] = None,
    dedupe: Optional[bool] = None,
) -> ClockingReport:
    """
    Run the whole pipeline for one snapshot of clock entries.

    Every stage sees the same reference instant, so open shift durations
    and window boundaries agree with each other.
    """
    reference_instant = ensure_utc(reference_instant) if reference_instant is not None else utc_now()
    timezone_str = timezone_str or settings.tz_default
    get_timezone(timezone_str)

    result = shifts_from_raw(
        raw_events,
        reference_instant=reference_instant,
        timezone_str=timezone_str,
        leave_day_fixed_hours=leave_day_fixed_hours,
        double_clock_in_policy=double_clock_in_policy,
        dedupe=dedupe,
    )
    shifts = result.shifts
    return ClockingReport(
        reference_instant=reference_instant,
        timezone=timezone_str,
        shifts=shifts,
        anomalies=detect_anomalies(shifts, long_shift_threshold_hours),
        totals_by_user=aggregate_by_user(shifts, reference_instant, timezone_str),
        totals_all_users=aggregate_all_users(shifts, reference_instant, timezone_str),
        on_duty=on_duty_user_ids(shifts),
        diagnostics=result.diagnostics,
    )
