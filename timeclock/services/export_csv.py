"""
Timesheet CSV export.
Serializes export rows with the fixed payroll column layout.
"""
import csv
import io
from datetime import date, datetime
from typing import Iterable, List, Mapping, Optional

from ..schemas.clocking import ExportRow, UserProfile
from .time_rules import utc_to_local

CSV_HEADER = [
    "User Name",
    "Surname",
    "Email Address",
    "Clock In Date",
    "Clock In Time",
    "Clock Out Date",
    "Clock Out Time",
    "Duration (hours)",
    "Shift Type",
    "Comment",
]

UNKNOWN_PROFILE = UserProfile(id="", name="Unknown", surname="User", email="unknown@email.com")


def format_date(value: date) -> str:
    return value.strftime("%m/%d/%Y")


def format_time(value: datetime, timezone_str: Optional[str] = None) -> str:
    return utc_to_local(value, timezone_str).strftime("%I:%M %p")


def _profile_columns(profile: Optional[UserProfile]) -> List[str]:
    if profile is None:
        profile = UNKNOWN_PROFILE
    return [
        profile.name or UNKNOWN_PROFILE.name,
        profile.surname or UNKNOWN_PROFILE.surname,
        profile.email or UNKNOWN_PROFILE.email,
    ]


def _row_columns(row: ExportRow, timezone_str: Optional[str]) -> List[str]:
    # Leave days and empty days only carry their date
    if row.is_placeholder or row.is_leave_day or row.clock_in is None:
        times = [format_date(row.day), "", "", ""]
    else:
        clock_in_local = utc_to_local(row.clock_in, timezone_str)
        times = [format_date(clock_in_local.date()), format_time(row.clock_in, timezone_str)]
        if row.clock_out is not None:
            clock_out_local = utc_to_local(row.clock_out, timezone_str)
            times += [format_date(clock_out_local.date()), format_time(row.clock_out, timezone_str)]
        else:
            times += ["", ""]
    return times + [f"{row.duration_hours:.2f}", row.shift_type.value, row.comment]


def render_timesheet_csv(
    rows: Iterable[ExportRow],
    profiles: Optional[Mapping[str, UserProfile]] = None,
    timezone_str: Optional[str] = None,
) -> str:
    """
    Render export rows as CSV text.

    Args:
        rows: rows from to_export_rows, for one or several users
        profiles: user id -> profile used for the name and email columns
        timezone_str: zone for the date and time columns (default: TZ_DEFAULT)
    """
    profiles = profiles or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(_profile_columns(profiles.get(row.user_id)) + _row_columns(row, timezone_str))
    return buffer.getvalue()


def export_filename(profile: Optional[UserProfile], start: date, end: date) -> str:
    name, surname, _ = _profile_columns(profile)
    return f"clock_entries_{name}_{surname}_{start.isoformat()}_to_{end.isoformat()}.csv"
