"""Show a viewer's routine (yesterday/today/tomorrow), exams, or attendance.

Reads a routine spreadsheet (Google Sheets link, CSV URL or local CSV file),
parses it for one viewer and prints JSON or a table.

Run with: python scripts/show_routine.py --cohort senior --section E --subject ERP
Source:   python scripts/show_routine.py --source data/routine.csv --cohort junior --section G
Table:    python scripts/show_routine.py --cohort senior --section F --table
Exams:    python scripts/show_routine.py --cohort senior --section E --exams
Attendance: python scripts/show_routine.py --cohort senior --section E --subject ERP \\
              --attendance --baseline data/baseline.json --attended ERP

Without --source the URL comes from SENIOR_ROUTINE_URL / JUNIOR_ROUTINE_URL.

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error or routine not recognized (message on stderr)
"""

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.academics.attendance import reconcile, resolve_window_start  # noqa: E402
from src.academics.config import get_config  # noqa: E402
from src.academics.errors import InvalidProfileError  # noqa: E402
from src.academics.logging import configure_logging  # noqa: E402
from src.academics.models import (  # noqa: E402
    JUNIOR,
    SENIOR,
    AttendanceBaseline,
    AttendanceDaySelections,
    AttendanceReport,
    AttendanceSelection,
    DaySchedule,
    EventType,
    ParseOutcome,
    RoutineSettings,
    ScheduleResult,
    UserProfile,
)
from src.academics.schedule import (  # noqa: E402
    ScheduleAggregator,
    day_window,
    discover_subjects,
    upcoming_exams,
)
from src.academics.source import read_local_csv  # noqa: E402


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr so stdout stays clean for JSON."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show a routine for one viewer as JSON or table.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--source",
        type=str,
        default=None,
        help="Routine URL or local CSV path (default: configured URL for the cohort).",
    )
    parser.add_argument("--cohort", choices=[SENIOR, JUNIOR], required=True)
    parser.add_argument("--section", type=str, required=True, help="E or F (seniors), E/F/G (juniors).")
    parser.add_argument(
        "--subject",
        action="append",
        default=[],
        help="Picked subject (repeatable). Seniors only see picked subjects when any are given.",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference day as YYYY-MM-DD (default: today).",
    )
    parser.add_argument("--table", action="store_true", help="Human-readable table output.")

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--exams", action="store_true", help="List exams and events from today on.")
    mode_group.add_argument("--attendance", action="store_true", help="Print an attendance report.")

    parser.add_argument(
        "--baseline",
        type=str,
        default=None,
        help='Baseline JSON file: {"term": 5, "asOf": "YYYY-MM-DD", "missed": {"ERP": 2}}.',
    )
    parser.add_argument(
        "--attended",
        action="append",
        default=[],
        help="Subject attended today (repeatable), for --attendance.",
    )
    return parser.parse_args()


def _is_local(source: str) -> bool:
    return source.startswith("file://") or Path(source).exists()


def _read(args: argparse.Namespace, profile: UserProfile) -> ScheduleResult:
    config = get_config()
    if args.source and _is_local(args.source):
        text = read_local_csv(args.source)
        if text is None:
            return ScheduleResult(outcome=ParseOutcome.FETCH_FAILED, source_url=args.source)
        aggregator = ScheduleAggregator(RoutineSettings(), config=config)
        return aggregator.parse_text(text, profile)

    settings = RoutineSettings()
    if args.source:
        settings = RoutineSettings(**{f"{profile.cohort}_routine_url": args.source})
    return ScheduleAggregator(settings, config=config).read(profile)


def _format_days(days: list[DaySchedule], labels: list[str] | None = None) -> str:
    """Format day groups as a table: Day | Time | Type | Subject | Room | Section."""
    headers = ["Day", "Time", "Type", "Subject", "Room", "Section"]
    rows = []
    for i, day in enumerate(days):
        name = f"{labels[i]} {day.day.isoformat()}" if labels else day.day.isoformat()
        if not day.entries:
            rows.append([name, "-", "-", "(nothing scheduled)", "-", "-"])
            continue
        for e in day.entries:
            rows.append([name, e.time, e.type, e.subject, e.room or "-", e.section or "all"])
            name = ""

    if not rows:
        return "(nothing scheduled)"

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows]
    return "\n".join([header_line, separator, *row_lines])


def _format_report(report: AttendanceReport) -> str:
    headers = ["Subject", "Scheduled", "Missed", "Attended", "%"]
    rows = [
        [r.subject, str(r.scheduled), str(r.missed), str(r.attended), str(r.percentage)]
        for r in report.rows
    ]
    rows.append(
        [
            "Total",
            str(report.total_scheduled),
            str(report.total_missed),
            str(report.total_attended),
            str(report.average_percentage),
        ]
    )
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows]
    title = f"Attendance {report.start.isoformat()} .. {report.end.isoformat()}"
    return "\n".join([title, header_line, separator, *row_lines])


def _attendance(
    args: argparse.Namespace, profile: UserProfile, result: ScheduleResult, today: date
) -> AttendanceReport:
    baseline = None
    if args.baseline:
        baseline = AttendanceBaseline.from_document(
            json.loads(Path(args.baseline).read_text(encoding="utf-8"))
        )
    selections = AttendanceDaySelections(
        day=today,
        selections=[AttendanceSelection(subject=s) for s in args.attended],
        submitted=bool(args.attended),
    )
    start = resolve_window_start(None, baseline, today)
    subjects = profile.subjects or discover_subjects(result.by_date, [EventType.CLASS])
    return reconcile(result.by_date, subjects, start, today, baseline, selections)


def _build_profile(args: argparse.Namespace) -> UserProfile:
    """Viewer profile from the command line.

    Raises:
        InvalidProfileError: If the section does not exist for the cohort.
    """
    return UserProfile.from_document(
        {"cohort": args.cohort, "section": args.section, "subjects": args.subject}
    )


def main(args: argparse.Namespace) -> int:
    config = get_config()
    configure_logging(config)

    try:
        profile = _build_profile(args)
    except InvalidProfileError as e:
        _log(f"show_routine: {e}")
        return 1
    today = args.today or date.today()
    _log(f"show_routine: {profile.cohort} section {profile.section} ({today.isoformat()})")

    result = _read(args, profile)
    if not result.ok:
        _log(f"  {result.message}")
        if result.source_url:
            _log(f"  Open the routine directly: {result.source_url}")
        return 1
    _log(f"  Parsed {len(result.by_date)} dates")

    if args.attendance:
        report = _attendance(args, profile, result, today)
        if args.table:
            print(_format_report(report))
        else:
            output = report.model_dump(mode="json")
            output["totals"] = {
                "scheduled": report.total_scheduled,
                "attended": report.total_attended,
                "missed": report.total_missed,
                "average_percentage": report.average_percentage,
            }
            print(json.dumps(output, indent=2))
        return 0

    if args.exams:
        groups = upcoming_exams(result.by_date, since=today)
        if args.table:
            print(_format_days(groups) if groups else "(no upcoming exams)")
        else:
            print(json.dumps([g.model_dump(mode="json") for g in groups], indent=2))
        return 0

    window = day_window(result.by_date, today)
    if args.table:
        print(_format_days(list(window.values()), labels=list(window)))
    else:
        print(json.dumps({k: v.model_dump(mode="json") for k, v in window.items()}, indent=2))
    return 0


if __name__ == "__main__":
    args = _parse_args()
    try:
        sys.exit(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
