"""
Export one employee's timesheet as CSV, one row per day.

Usage:
    python scripts/export_timesheet.py <user_id> --start 2024-01-01 --end 2024-01-31 [--timezone Africa/Johannesburg] [--out DIR]
"""
import sys
import os
import argparse
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from timeclock.config import settings
from timeclock.db import SessionLocal
from timeclock.schemas.clocking import DateRange
from timeclock.services.aggregation import to_export_rows, timesheet_total_hours
from timeclock.services.entry_source import PAIRING_LOOKBACK, load_leave_events, load_raw_events, load_user_profiles
from timeclock.services.export_csv import export_filename, render_timesheet_csv
from timeclock.services.pipeline import shifts_from_raw
from timeclock.services.time_rules import local_midnight


def _parse_day(value: str):
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value}")


def export_timesheet(user_id: str, start, end, timezone_str: str, out_dir: str) -> str:
    day_range = DateRange(start=start, end=end)
    db = SessionLocal()
    try:
        raw = load_raw_events(
            db,
            user_id=user_id,
            start=local_midnight(start, timezone_str) - PAIRING_LOOKBACK,
            end=local_midnight(end + timedelta(days=1), timezone_str) + PAIRING_LOOKBACK,
        )
        raw += load_leave_events(db, user_id, day_range, timezone_str)
        profiles = load_user_profiles(db, [user_id])
    finally:
        db.close()

    result = shifts_from_raw(raw, timezone_str=timezone_str)
    rows = to_export_rows(result.shifts.get(user_id, []), day_range, timezone_str=timezone_str, user_id=user_id)

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, export_filename(profiles.get(user_id), start, end))
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(render_timesheet_csv(rows, profiles, timezone_str=timezone_str))

    if user_id not in profiles:
        print(f"[WARN] No profile for user {user_id}; exported as Unknown User")
    if result.diagnostics.dropped_total:
        print(f"[WARN] {result.diagnostics.dropped_total} clock entries could not be paired or parsed")
    print(f"[OK] {len(rows)} days, {timesheet_total_hours(rows):.2f} hours -> {path}")
    return path


def main():
    parser = argparse.ArgumentParser(description="Export a timesheet CSV for one user")
    parser.add_argument("user_id")
    parser.add_argument("--start", type=_parse_day, required=True)
    parser.add_argument("--end", type=_parse_day, required=True)
    parser.add_argument("--timezone", default=settings.tz_default)
    parser.add_argument("--out", default=".")
    args = parser.parse_args()

    if args.start > args.end:
        print("[ERROR] --start must not be after --end")
        sys.exit(1)
    export_timesheet(args.user_id, args.start, args.end, args.timezone, args.out)


if __name__ == "__main__":
    main()
