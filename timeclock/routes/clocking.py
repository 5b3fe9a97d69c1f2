"""
Clocking API routes.
Shift reconstruction, totals, anomalies and timesheet export, computed
from posted events or from the clock entry store.
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime, timedelta
import pytz

from ..db import get_db
from ..config import settings
from ..schemas.clocking import (
    WINDOW_NAMES,
    ClockingReport,
    DateRange,
    EventsRequest,
    ExportRequest,
    ReconstructionResult,
    ReportRequest,
)
from ..services.aggregation import aggregate, to_export_rows, timesheet_total_hours, window_bounds
from ..services.anomalies import detect_anomalies, shifts_started_between, shifts_started_today
from ..services.entry_source import PAIRING_LOOKBACK, load_leave_events, load_raw_events, load_user_profiles
from ..services.export_csv import export_filename, render_timesheet_csv
from ..services.formatting import display_name
from ..services.pipeline import build_report, shifts_from_raw
from ..services.shifts import latest_first
from ..services.time_rules import ensure_utc, get_timezone, local_midnight, utc_now

router = APIRouter(prefix="/clocking", tags=["clocking"])


def _timezone_or_400(timezone_str: Optional[str]) -> str:
    name = timezone_str or settings.tz_default
    try:
        get_timezone(name)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {name}")
    return name


def _reference_or_400(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid reference_instant. Use ISO-8601")


def _date_or_400(value: str, name: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} date format. Use YYYY-MM-DD")


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =====================
# Computations over posted events
# =====================

@router.post("/shifts", response_model=ReconstructionResult)
def reconstruct_posted_shifts(payload: EventsRequest):
    """Rebuild shifts for the posted clock entries."""
    tz = _timezone_or_400(payload.timezone)
    return shifts_from_raw(payload.events, reference_instant=payload.reference_instant, timezone_str=tz)


@router.post("/report", response_model=ClockingReport)
def report_posted_events(payload: ReportRequest):
    tz = _timezone_or_400(payload.timezone)
    return build_report(
        payload.events,
        reference_instant=payload.reference_instant,
        timezone_str=tz,
        long_shift_threshold_hours=payload.long_shift_threshold_hours,
    )


@router.post("/export")
def export_posted_timesheet(payload: ExportRequest):
    tz = _timezone_or_400(payload.timezone)
    if payload.start > payload.end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    result = shifts_from_raw(payload.events, timezone_str=tz)
    rows = to_export_rows(
        result.shifts.get(payload.user_id, []),
        DateRange(start=payload.start, end=payload.end),
        timezone_str=tz,
        user_id=payload.user_id,
    )
    profiles = {payload.user_id: payload.profile} if payload.profile else {}
    return _csv_response(
        render_timesheet_csv(rows, profiles, timezone_str=tz),
        export_filename(payload.profile, payload.start, payload.end),
    )


# =====================
# Views over the clock entry store
# =====================

@router.get("/users/{user_id}/shifts")
def list_user_shifts(
    user_id: str,
    window: str = "today",
    reference_instant: Optional[str] = None,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Shifts a user started within one totals window, newest first."""
    if window not in WINDOW_NAMES:
        raise HTTPException(status_code=400, detail=f"Invalid window. Use one of: {', '.join(WINDOW_NAMES)}")
    tz = _timezone_or_400(timezone)
    reference = _reference_or_400(reference_instant)
    bounds = window_bounds(reference, tz)
    start, end = bounds[window]

    # Totals cover every window, so load from the all-time floor rather than the listed window
    totals_start = bounds["all_time"][0]
    raw = load_raw_events(db, user_id=user_id, start=totals_start - PAIRING_LOOKBACK, end=reference + timedelta(microseconds=1))
    result = shifts_from_raw(raw, reference_instant=reference, timezone_str=tz)
    shifts = result.shifts.get(user_id, [])
    scoped = shifts_started_between({user_id: shifts}, start, end)[user_id]
    return {
        "user_id": user_id,
        "window": window,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "shifts": latest_first(scoped),
        "totals": aggregate(shifts, reference, tz),
        "diagnostics": result.diagnostics,
    }


@router.get("/totals")
def get_totals(
    reference_instant: Optional[str] = None,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Per-user and company-wide hours for every window."""
    tz = _timezone_or_400(timezone)
    reference = _reference_or_400(reference_instant)
    report = build_report(load_raw_events(db, end=reference + timedelta(microseconds=1)), reference_instant=reference, timezone_str=tz)
    profiles = load_user_profiles(db, report.totals_by_user.keys())
    return {
        "reference_instant": reference.isoformat(),
        "totals_by_user": report.totals_by_user,
        "totals_all_users": report.totals_all_users,
        "users": {uid: display_name(profiles.get(uid)) for uid in report.totals_by_user},
        "on_duty": report.on_duty,
        "diagnostics": report.diagnostics,
    }


@router.get("/anomalies")
def get_today_anomalies(
    reference_instant: Optional[str] = None,
    timezone: Optional[str] = None,
    long_shift_threshold_hours: Optional[float] = None,
    db: Session = Depends(get_db),
):
    """Open and over-long shifts started today, for the admin warnings."""
    tz = _timezone_or_400(timezone)
    reference = _reference_or_400(reference_instant)
    today_start = local_midnight(reference.astimezone(get_timezone(tz)).date(), tz)
    raw = load_raw_events(db, start=today_start - PAIRING_LOOKBACK, end=reference + timedelta(microseconds=1))
    result = shifts_from_raw(raw, reference_instant=reference, timezone_str=tz)
    today = shifts_started_today(result.shifts, reference, tz)
    return detect_anomalies(today, long_shift_threshold_hours)


@router.get("/timesheet/{user_id}/export.csv")
def export_user_timesheet(
    user_id: str,
    start: str,
    end: str,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """One CSV row per day for the user, leave bookings included."""
    tz = _timezone_or_400(timezone)
    start_day = _date_or_400(start, "start")
    end_day = _date_or_400(end, "end")
    if start_day > end_day:
        raise HTTPException(status_code=400, detail="start must not be after end")
    day_range = DateRange(start=start_day, end=end_day)

    # Clock-outs after the last midnight still close shifts that started in range
    raw = load_raw_events(
        db,
        user_id=user_id,
        start=local_midnight(start_day, tz) - PAIRING_LOOKBACK,
        end=local_midnight(end_day + timedelta(days=1), tz) + PAIRING_LOOKBACK,
    )
    raw += load_leave_events(db, user_id, day_range, tz)
    result = shifts_from_raw(raw, timezone_str=tz)
    rows = to_export_rows(result.shifts.get(user_id, []), day_range, timezone_str=tz, user_id=user_id)

    profiles = load_user_profiles(db, [user_id])
    response = _csv_response(
        render_timesheet_csv(rows, profiles, timezone_str=tz),
        export_filename(profiles.get(user_id), start_day, end_day),
    )
    response.headers["X-Total-Hours"] = f"{timesheet_total_hours(rows):.2f}"
    return response
