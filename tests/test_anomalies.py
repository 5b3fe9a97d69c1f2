# tests/test_anomalies.py
from datetime import datetime, timedelta

import pytz

from timeclock.schemas.clocking import Shift
from timeclock.services.anomalies import detect_anomalies, shifts_started_between, shifts_started_today


def utc(*args):
    return datetime(*args, tzinfo=pytz.UTC)


def closed(user_id, start, hours, **extra):
    return Shift(user_id=user_id, clock_in=start, clock_out=start + timedelta(hours=hours), duration_hours=hours, **extra)


def test_long_shift_threshold():
    start = utc(2024, 1, 1, 6, 0)
    long_one = closed("u1", start, 12.5)
    short_one = closed("u2", start, 11.9)

    anomalies = detect_anomalies({"u1": [long_one], "u2": [short_one]}, long_shift_threshold_hours=12)

    assert anomalies.long_shifts == [long_one]


def test_threshold_is_inclusive_and_defaults_to_twelve():
    exactly = closed("u1", utc(2024, 1, 1, 6, 0), 12.0)
    assert detect_anomalies({"u1": [exactly]}).long_shifts == [exactly]


def test_open_shifts_listed_for_all_users():
    open_a = Shift(user_id="a", clock_in=utc(2024, 1, 1, 7, 0), duration_hours=14.0)
    open_b = Shift(user_id="b", clock_in=utc(2024, 1, 1, 9, 0), duration_hours=1.0)

    anomalies = detect_anomalies({"a": [open_a], "b": [open_b], "c": []})

    assert anomalies.unclosed_shifts == [open_a, open_b]
    # open shifts are reported as unclosed, not as long
    assert anomalies.long_shifts == []


def test_leave_days_never_long():
    leave = closed("u1", utc(2024, 1, 2, 0, 0), 13.0, is_leave_day=True)
    assert detect_anomalies({"u1": [leave]}, long_shift_threshold_hours=12).long_shifts == []


def test_multi_day_and_negative_lists():
    overnight = closed("u1", utc(2024, 1, 1, 22, 0), 3.0, multi_day_span=True)
    clamped = Shift(user_id="u1", clock_in=utc(2024, 1, 2, 9, 0), clock_out=utc(2024, 1, 2, 8, 0), negative_duration=True)

    anomalies = detect_anomalies({"u1": [overnight, clamped]})

    assert anomalies.multi_day_shifts == [overnight]
    assert anomalies.negative_duration_shifts == [clamped]


def test_scope_to_today():
    yesterday = closed("u1", utc(2023, 12, 31, 20, 0), 13.0)
    today = closed("u1", utc(2024, 1, 1, 5, 0), 12.5)
    scoped = shifts_started_today({"u1": [yesterday, today]}, utc(2024, 1, 1, 18, 0), "UTC")

    assert scoped == {"u1": [today]}
    assert detect_anomalies(scoped).long_shifts == [today]


def test_today_follows_local_midnight():
    # 23:30 UTC on Dec 31 is already Jan 1 in Johannesburg
    late = closed("u1", utc(2023, 12, 31, 23, 30), 1.0)
    reference = utc(2024, 1, 1, 10, 0)

    assert shifts_started_today({"u1": [late]}, reference, "Africa/Johannesburg") == {"u1": [late]}
    assert shifts_started_today({"u1": [late]}, reference, "UTC") == {"u1": []}


def test_started_between_is_half_open():
    start, end = utc(2024, 1, 1), utc(2024, 1, 2)
    at_start = closed("u1", start, 1.0)
    at_end = closed("u1", end, 1.0)
    assert shifts_started_between({"u1": [at_start, at_end]}, start, end) == {"u1": [at_start]}
