"""
cli.py — Command-line entry point for ClinicFlow

Commands (operate on the JSON data directory):
  sync-holidays   fetch public holidays (API or --csv), mark sessions absent,
                  add makeups
  edit            change a patient's schedule, regenerate future sessions
  day             list a day's sessions and stats
  check           integrity checks over every patient
  export          CSV + Excel + progress report

Usage:
  python -m clinicflow.cli sync-holidays --year 2025 --yes
  python -m clinicflow.cli sync-holidays --csv data/holidays_2025.csv
  python -m clinicflow.cli edit k3x9q2m1a --slot 1 09:00 --slot 4 17:30 --total 20
  python -m clinicflow.cli day --date 2025-05-08
  python -m clinicflow.cli export --output-dir outputs/
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from clinicflow.agenda import day_stats, sessions_on
from clinicflow.config import (
    DEFAULT_DATA_DIR,
    DEFAULT_HOLIDAY_ZONE,
    load_holiday_csv,
    load_holidays,
    load_patients,
    save_holidays,
    save_patients,
)
from clinicflow.exporter import export_progress_report, export_to_csv, export_to_excel
from clinicflow.holidays_client import HolidayClient, fetch_holidays
from clinicflow.models import DateRange, ScheduleConfig, SessionCount, StartConfig
from clinicflow.orchestrator import PatientBook
from clinicflow.validation import (
    IssueSeverity,
    PatientNotFoundError,
    ScheduleValidationError,
    check_patient,
)

logger = logging.getLogger(__name__)


def _ask(prompt: str) -> bool:
    """Interactive yes/no. Non-interactive environments answer no."""
    try:
        ans = input(f"\n▶ {prompt} [y/N]: ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        return False
    return ans in ("y", "yes")


def _paths(data_dir: Path):
    return data_dir / "patients.json", data_dir / "holidays.json"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_sync_holidays(args: argparse.Namespace) -> int:
    patients_path, holidays_path = _paths(args.data_dir)
    if not args.yes and not _ask(
        "Sync public holidays?\nThis will mark holiday sessions as absent and reschedule them."
    ):
        print("Aborted.")
        return 1

    if args.csv:
        fetched = load_holiday_csv(Path(args.csv))
        source = args.csv
    else:
        year = args.year or date.today().year
        client = HolidayClient(zone=args.zone)
        fetched = fetch_holidays(client, [year, year + 1])
        source = f"{year}-{year + 1}"
    if not fetched:
        print("  ✗ No holidays retrieved")
        return 1

    book = PatientBook(load_patients(patients_path), load_holidays(holidays_path))
    changed = book.sync_holidays(fetched)
    save_patients(book.patients, patients_path)
    save_holidays(book.holidays, holidays_path)

    print(f"  ✓ {len(fetched)} holidays ({source}) | {changed} patient(s) updated")
    return 0


def _edited_config(current: StartConfig, args: argparse.Namespace) -> StartConfig:
    """Current config with the command-line overrides applied."""
    schedule = current.schedule
    if args.slot:
        schedule = tuple(ScheduleConfig(int(day), time) for day, time in args.slot)

    duration = current.duration
    if args.total is not None:
        duration = SessionCount(args.total)
    elif args.end is not None:
        duration = DateRange(args.end)

    return StartConfig(
        start_date=args.start or current.start_date,
        schedule=schedule,
        duration=duration,
    )


def cmd_edit(args: argparse.Namespace) -> int:
    patients_path, holidays_path = _paths(args.data_dir)
    book = PatientBook(load_patients(patients_path), load_holidays(holidays_path))
    try:
        patient = book.get(args.patient_id)
    except PatientNotFoundError:
        print(f"  ✗ Unknown patient {args.patient_id}")
        return 1

    new_config = _edited_config(patient.start_config, args)
    confirm = None if args.yes else lambda: _ask(
        f"Regenerate future sessions for {patient.name}?\n"
        "Scheduled sessions after today will be replaced."
    )
    try:
        edited = book.edit(patient.id, new_config, confirm=confirm)
    except ScheduleValidationError as e:
        for err in e.errors:
            print(f"  ✗ {err}")
        return 1

    save_patients(book.patients, patients_path)
    print(f"  ✓ {edited.name}: {len(edited.sessions)} sessions")
    return 0



def cmd_day(args: argparse.Namespace) -> int:
    patients_path, holidays_path = _paths(args.data_dir)
    patients = load_patients(patients_path)
    holidays = load_holidays(holidays_path)
    day = args.date

    stats = day_stats(patients, day)
    holiday = holidays.get(day.isoformat())
    print(f"\n  {day.strftime('%A %d %B %Y')}{'  [' + holiday + ']' if holiday else ''}")
    print(f"  {stats.total_scheduled} sessions | {stats.total_completed} done | {stats.total_locked} validated\n")

    entries = sessions_on(patients, day)
    if not entries:
        print("  No sessions scheduled")
    for patient, session in entries:
        lock = " [validated]" if session.is_locked else ""
        notes = f"  ({session.notes})" if session.notes else ""
        print(f"  {session.time}  {patient.name:<24} {session.status.value:<10}{lock}{notes}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    patients_path, _ = _paths(args.data_dir)
    patients = load_patients(patients_path)
    hard = 0
    for p in patients:
        for issue in check_patient(p):
            print(f"  {issue}")
            if issue.severity is IssueSeverity.HARD:
                hard += 1
    status = "✓" if hard == 0 else "✗"
    print(f"\n  {status} {len(patients)} patients checked, {hard} hard issue(s)")
    return 0 if hard == 0 else 1


def cmd_export(args: argparse.Namespace) -> int:
    patients_path, _ = _paths(args.data_dir)
    patients = load_patients(patients_path)
    out = Path(args.output_dir)
    prefix = f"sessions_{date.today().isoformat()}"

    export_to_csv(patients, out / f"{prefix}.csv")
    export_to_excel(patients, out / f"{prefix}.xlsx")
    export_progress_report(patients, out / f"{prefix}_progress.txt")
    print(f"  ✓ Exported {len(patients)} patients → {out}")
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def _iso_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ClinicFlow session scheduler")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR,
                        help="Directory holding patients.json / holidays.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p_sync = sub.add_parser("sync-holidays", help="Fetch holidays and reschedule affected sessions")
    p_sync.add_argument("--year", type=int, default=None, help="First year (default: current)")
    p_sync.add_argument("--zone", default=DEFAULT_HOLIDAY_ZONE, help="Holiday zone")
    p_sync.add_argument("--csv", default=None,
                        help="Offline holiday table (columns: date, name) instead of the API")
    p_sync.add_argument("--yes", action="store_true", help="Skip confirmation")
    p_sync.set_defaults(func=cmd_sync_holidays)

    p_edit = sub.add_parser("edit", help="Change a patient's schedule")
    p_edit.add_argument("patient_id", help="Patient id")
    p_edit.add_argument("--start", type=_iso_date, default=None, help="New start date")
    p_edit.add_argument("--slot", nargs=2, action="append", metavar=("DAY", "HH:MM"),
                        help="Weekly slot, 0 = Sunday (repeat; replaces the schedule)")
    duration = p_edit.add_mutually_exclusive_group()
    duration.add_argument("--total", type=int, default=None, help="Total sessions")
    duration.add_argument("--end", type=_iso_date, default=None, help="End date")
    p_edit.add_argument("--yes", action="store_true", help="Regenerate without asking")
    p_edit.set_defaults(func=cmd_edit)

    p_day = sub.add_parser("day", help="Show sessions for one day")
    p_day.add_argument("--date", type=_iso_date, default=date.today(), help="YYYY-MM-DD")
    p_day.set_defaults(func=cmd_day)

    p_check = sub.add_parser("check", help="Integrity checks")
    p_check.set_defaults(func=cmd_check)

    p_export = sub.add_parser("export", help="Export CSV, Excel and progress report")
    p_export.add_argument("--output-dir", default="outputs", help="Output directory")
    p_export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
