# tests/test_leave.py
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytz

from timeclock.schemas.clocking import ClockAction, DateRange
from timeclock.services.leave import expand_leave_request, leave_day_events
from timeclock.services.normalizer import normalize
from timeclock.services.shifts import reconstruct


def test_leave_day_pair_at_local_midnight():
    clock_in, clock_out = leave_day_events("u1", date(2024, 1, 2), "Africa/Johannesburg", source_id="lr1")

    assert clock_in.timestamp == datetime(2024, 1, 1, 22, 0, tzinfo=pytz.UTC)
    assert clock_out.timestamp - clock_in.timestamp == timedelta(minutes=1)
    assert (clock_in.action, clock_out.action) == (ClockAction.clock_in, ClockAction.clock_out)
    assert clock_in.is_leave_day and clock_out.is_leave_day
    assert (clock_in.id, clock_out.id) == ("lr1-2024-01-02-in", "lr1-2024-01-02-out")


def test_approved_request_expands_every_day():
    request = {"id": "lr1", "userId": "u1", "startDate": "2024-01-02", "endDate": "2024-01-04", "status": "approved"}
    events = expand_leave_request(request, timezone_str="UTC")
    assert len(events) == 6

    shifts = reconstruct(normalize(events), reference_instant=datetime(2024, 1, 10, tzinfo=pytz.UTC), timezone_str="UTC")["u1"]
    assert [s.duration_hours for s in shifts] == [8.0, 8.0, 8.0]
    assert all(s.is_leave_day for s in shifts)


def test_pending_and_rejected_requests_expand_to_nothing():
    for status in ("pending", "rejected"):
        request = {"userId": "u1", "startDate": "2024-01-02", "endDate": "2024-01-04", "status": status}
        assert expand_leave_request(request) == []


def test_clip_to_range():
    request = {"userId": "u1", "startDate": "2024-01-01", "endDate": "2024-01-31", "status": "approved"}
    events = expand_leave_request(request, clip=DateRange(start=date(2024, 1, 30), end=date(2024, 2, 5)), timezone_str="UTC")
    assert sorted({e.timestamp.date() for e in events}) == [date(2024, 1, 30), date(2024, 1, 31)]


def test_iso_datetime_dates_and_row_objects():
    row = SimpleNamespace(
        id="lr2",
        user_id="u9",
        start_date="2024-03-01T00:00:00Z",
        end_date=datetime(2024, 3, 1, 12, 0),
        status="approved",
        leave_type="annual",
    )
    events = expand_leave_request(row, timezone_str="UTC")
    assert [e.user_id for e in events] == ["u9", "u9"]
    assert events[0].timestamp.date() == date(2024, 3, 1)
