# tests/test_formatting.py
from datetime import datetime

import pytz

from timeclock.schemas.clocking import Shift, UserProfile
from timeclock.services.formatting import display_name, format_duration, on_duty_user_ids, short_location


def test_format_duration():
    assert format_duration(9.0) == "9h 0m"
    assert format_duration(7.5) == "7h 30m"
    assert format_duration(1.9999) == "2h 0m"
    assert format_duration(0) == "0h 0m"
    assert format_duration(None) == "-"


def test_short_location():
    assert short_location("Sandton Ward 103, Johannesburg, Gauteng") == "Sandton"
    assert short_location("Emfuleni Local Municipality, Gauteng") == "Emfuleni"
    assert short_location("Rosebank") == "Rosebank"
    assert short_location(None) == "N/A"


def test_display_name():
    assert display_name(UserProfile(id="u1", name="Thandi", surname="Nkosi")) == "Thandi Nkosi"
    assert display_name(UserProfile(id="u2", email="sipho@example.com")) == "sipho@example.com"
    assert display_name(None) == "Unknown User"


def test_on_duty_user_ids():
    start = datetime(2024, 1, 1, 8, 0, tzinfo=pytz.UTC)
    shifts = {
        "zed": [Shift(user_id="zed", clock_in=start)],
        "amy": [Shift(user_id="amy", clock_in=start)],
        "bob": [Shift(user_id="bob", clock_in=start, clock_out=start)],
    }
    assert on_duty_user_ids(shifts) == ["amy", "zed"]
