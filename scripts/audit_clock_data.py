"""
Report clock data problems: dropped records, orphan clock-outs, shifts still
open, shifts over the long-shift threshold and shifts that cross midnight.

Usage:
    python scripts/audit_clock_data.py [--user USER_ID] [--timezone TZ] [--threshold HOURS]
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from timeclock.config import settings
from timeclock.db import SessionLocal
from timeclock.services.entry_source import load_raw_events, load_user_profiles
from timeclock.services.formatting import display_name, format_duration, short_location
from timeclock.services.pipeline import build_report
from timeclock.services.time_rules import utc_to_local


def _describe(shift, profiles, timezone_str: str) -> str:
    started = utc_to_local(shift.clock_in, timezone_str).strftime("%Y-%m-%d %H:%M")
    where = short_location(shift.clock_in_location) or "-"
    return f"{display_name(profiles.get(shift.user_id))}: {started} ({where}) {format_duration(shift.duration_hours)}"


def audit(user_id=None, timezone_str=None, threshold=None) -> int:
    timezone_str = timezone_str or settings.tz_default
    db = SessionLocal()
    try:
        raw = load_raw_events(db, user_id=user_id)
        profiles = load_user_profiles(db)
    finally:
        db.close()

    report = build_report(raw, timezone_str=timezone_str, long_shift_threshold_hours=threshold)
    print(f"Clock entries read: {len(raw)}")
    print(f"Users with shifts: {len(report.shifts)}")
    print(f"On duty now: {', '.join(display_name(profiles.get(u)) for u in report.on_duty) or '-'}")

    print("\nData quality")
    for name, count in report.diagnostics.model_dump().items():
        print(f"  {name}: {count}")

    sections = [
        ("Open shifts", report.anomalies.unclosed_shifts),
        ("Long shifts", report.anomalies.long_shifts),
        ("Multi-day shifts", report.anomalies.multi_day_shifts),
        ("Negative spans (clamped)", report.anomalies.negative_duration_shifts),
    ]
    findings = 0
    for title, shifts in sections:
        print(f"\n{title}: {len(shifts)}")
        for shift in shifts:
            print(f"  - {_describe(shift, profiles, timezone_str)}")
        findings += len(shifts)
    return findings + report.diagnostics.dropped_total


def main():
    parser = argparse.ArgumentParser(description="Audit clock entries for pairing problems")
    parser.add_argument("--user", dest="user_id", default=None)
    parser.add_argument("--timezone", default=None)
    parser.add_argument("--threshold", type=float, default=None, help="long shift threshold in hours")
    args = parser.parse_args()

    findings = audit(args.user_id, args.timezone, args.threshold)
    sys.exit(1 if findings else 0)


if __name__ == "__main__":
    main()
