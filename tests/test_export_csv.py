# tests/test_export_csv.py
import csv
import io
from datetime import date, datetime, timedelta

import pytz

from timeclock.schemas.clocking import DateRange, Shift, UserProfile
from timeclock.services.aggregation import to_export_rows
from timeclock.services.export_csv import CSV_HEADER, export_filename, render_timesheet_csv


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


PROFILE = UserProfile(id="u1", name="Thandi", surname="Nkosi", email="thandi@example.com")


def _parse(text):
    return list(csv.reader(io.StringIO(text)))


def _rows(shifts, start, end, tz="UTC"):
    return to_export_rows(shifts, DateRange(start=start, end=end), tz, user_id="u1")


def test_header_and_regular_row():
    shift = Shift(user_id="u1", clock_in=utc(2024, 1, 1, 8, 0), clock_out=utc(2024, 1, 1, 17, 0), duration_hours=9.0)
    lines = _parse(render_timesheet_csv(_rows([shift], date(2024, 1, 1), date(2024, 1, 1)), {"u1": PROFILE}, "UTC"))

    assert lines[0] == CSV_HEADER
    assert lines[0][0] == "User Name" and lines[0][-1] == "Comment"
    assert lines[1] == [
        "Thandi", "Nkosi", "thandi@example.com",
        "01/01/2024", "08:00 AM", "01/01/2024", "05:00 PM",
        "9.00", "Regular", "",
    ]


def test_times_are_local():
    shift = Shift(user_id="u1", clock_in=utc(2024, 1, 1, 20, 0), clock_out=utc(2024, 1, 1, 23, 15), duration_hours=3.25, multi_day_span=True)
    rows = _rows([shift], date(2024, 1, 1), date(2024, 1, 1), tz="Africa/Johannesburg")
    line = _parse(render_timesheet_csv(rows, {"u1": PROFILE}, "Africa/Johannesburg"))[1]

    assert line[3:8] == ["01/01/2024", "10:00 PM", "01/02/2024", "01:15 AM", "3.25"]
    assert line[9] == "Multi-day shift"


def test_placeholder_and_leave_rows_have_blank_times():
    leave = Shift(
        user_id="u1",
        clock_in=utc(2024, 1, 2, 0, 0),
        clock_out=utc(2024, 1, 2, 0, 1),
        duration_hours=8.0,
        is_leave_day=True,
    )
    lines = _parse(render_timesheet_csv(_rows([leave], date(2024, 1, 1), date(2024, 1, 2)), {"u1": PROFILE}, "UTC"))

    assert lines[1][3:] == ["01/01/2024", "", "", "", "0.00", "No Shift", ""]
    assert lines[2][3:] == ["01/02/2024", "", "", "", "8.00", "Leave Day", "Leave Day"]


def test_missing_profile_uses_unknown_user():
    lines = _parse(render_timesheet_csv(_rows([], date(2024, 1, 1), date(2024, 1, 1))))
    assert lines[1][:3] == ["Unknown", "User", "unknown@email.com"]


def test_one_line_per_day():
    start = date(2024, 2, 26)
    text = render_timesheet_csv(_rows([], start, start + timedelta(days=6)), {"u1": PROFILE})
    assert len(text.strip().split("\n")) == 8


def test_export_filename():
    assert export_filename(PROFILE, date(2024, 1, 1), date(2024, 1, 31)) == "clock_entries_Thandi_Nkosi_2024-01-01_to_2024-01-31.csv"
    assert export_filename(None, date(2024, 1, 1), date(2024, 1, 1)) == "clock_entries_Unknown_User_2024-01-01_to_2024-01-01.csv"
