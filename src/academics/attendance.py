"""Attendance reconciliation against the aggregated schedule.

Students report which of today's classes they attended; earlier absences
come from a manually entered baseline. For each subject:

    missed_today = max(0, scheduled_today - attended_today)
    missed       = baseline_missed + missed_today
    attended     = max(0, scheduled - missed)
    percentage   = round(attended / scheduled * 100), 0 when nothing is scheduled

Only class entries count. Exams and submissions are never scheduled
sessions for attendance purposes.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from src.academics.config import AcademicsConfig, get_config
from src.academics.logging import get_logger
from src.academics.models import (
    DEFAULT_REMINDER_TIME,
    AttendanceBaseline,
    AttendanceDaySelections,
    AttendanceReport,
    AttendanceSelection,
    ByDateMap,
    EventType,
    RoutineSettings,
    ScheduleEntry,
    SubjectAttendance,
    UserProfile,
)
from src.academics.parsers.subjects import canonicalize
from src.academics.schedule import ScheduleAggregator, discover_subjects, entries_for_day
from src.academics.store import AttendanceRepository, DocumentStore, RoutineSettingsRepository

log = get_logger(__name__)


@dataclass
class ScheduledCounts:
    """Class sessions per subject in a window, and on its last day."""

    total: Counter = field(default_factory=Counter)
    today: Counter = field(default_factory=Counter)


def _subject_key(subject: str) -> str:
    return canonicalize(subject).upper()


def _attributed(counts: dict[str, int], subject: str) -> int:
    """Sum counts whose subject is the same subject as `subject` once canonicalized."""
    if subject in counts:
        return counts[subject]
    key = _subject_key(subject)
    return sum(n for name, n in counts.items() if _subject_key(name) == key)


def count_scheduled(by_date: ByDateMap, start: date, end: date) -> ScheduledCounts:
    """Count class entries per subject for dates in [start, end]."""
    counts = ScheduledCounts()
    for key, entries in by_date.items():
        try:
            day = date.fromisoformat(key)
        except ValueError:
            continue
        if day < start or day > end:
            continue
        for entry in entries:
            if entry.type != EventType.CLASS:
                continue
            counts.total[entry.subject] += 1
            if day == end:
                counts.today[entry.subject] += 1
    return counts


def resolve_window_start(
    term_start: date | None, baseline: AttendanceBaseline | None, end: date
) -> date:
    """Term start if configured, else the baseline's as-of day, else the first of end's month."""
    if term_start is not None:
        return term_start
    if baseline is not None and baseline.as_of is not None:
        return baseline.as_of
    return end.replace(day=1)


def subject_attendance(
    subject: str,
    scheduled: int,
    scheduled_today: int,
    attended_today: int,
    baseline_missed: int,
) -> SubjectAttendance:
    missed_today = max(0, scheduled_today - attended_today)
    missed = max(0, baseline_missed) + missed_today
    attended = max(0, scheduled - missed)
    percentage = round(attended / scheduled * 100) if scheduled else 0
    return SubjectAttendance(
        subject=subject,
        scheduled=scheduled,
        missed=missed,
        attended=attended,
        percentage=percentage,
    )


def reconcile(
    by_date: ByDateMap,
    subjects: list[str],
    start: date,
    end: date,
    baseline: AttendanceBaseline | None = None,
    today_selections: AttendanceDaySelections | None = None,
) -> AttendanceReport:
    """Build the attendance report for subjects over [start, end].

    Args:
        by_date: Aggregated schedule for the viewer.
        subjects: Subjects to report on, in display order.
        start: First day of the window.
        end: Last day of the window (normally today).
        baseline: Classes missed before tracking began.
        today_selections: The viewer's self-reported attendance for `end`.
    """
    counts = count_scheduled(by_date, start, end)
    attended_today: dict[str, int] = {}
    if today_selections is not None and today_selections.day == end:
        attended_today = today_selections.attended_counts()
    missed_before = baseline.missed if baseline is not None else {}

    rows = [
        subject_attendance(
            subject,
            scheduled=_attributed(counts.total, subject),
            scheduled_today=_attributed(counts.today, subject),
            attended_today=_attributed(attended_today, subject),
            baseline_missed=_attributed(missed_before, subject),
        )
        for subject in subjects
    ]
    report = AttendanceReport(start=start, end=end, rows=rows)
    log.info(
        "attendance_reconciled",
        start=start.isoformat(),
        end=end.isoformat(),
        subjects=len(rows),
        scheduled=report.total_scheduled,
        average=report.average_percentage,
    )
    return report


def classes_for_check_in(by_date: ByDateMap, day: date) -> list[ScheduleEntry]:
    """The day's class entries offered in the daily check-in, in slot order."""
    return [e for e in entries_for_day(by_date, day) if e.type == EventType.CLASS]


def _reminder_time(value: str) -> time:
    try:
        hours, minutes = value.strip().split(":", 1)
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError):
        hours, minutes = DEFAULT_REMINDER_TIME.split(":")
        return time(int(hours), int(minutes))


def should_prompt(
    settings: RoutineSettings,
    now: datetime,
    day_record: AttendanceDaySelections | None,
) -> bool:
    """Whether to show the daily check-in: after reminder time, until submitted."""
    if day_record is not None and day_record.submitted and day_record.day == now.date():
        return False
    return now.time() >= _reminder_time(settings.reminder_time)


class AttendanceService:
    """Attendance operations for one viewer, backed by a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        aggregator: ScheduleAggregator | None = None,
        config: AcademicsConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.settings_repo = RoutineSettingsRepository(store)
        self.attendance_repo = AttendanceRepository(store)
        self.aggregator = aggregator

    def _settings(self) -> RoutineSettings:
        return self.settings_repo.get()

    def _save_baseline(
        self, uid: str, cohort: str, missed: dict[str, Any], as_of: date
    ) -> AttendanceBaseline:
        baseline = AttendanceBaseline(
            term=self._settings().term(cohort), as_of=as_of, missed=missed
        )
        self.attendance_repo.save_baseline(uid, baseline)
        return baseline

    def create_baseline(
        self, uid: str, cohort: str, missed: dict[str, Any], today: date | None = None
    ) -> AttendanceBaseline:
        """First-time setup: classes missed up to yesterday."""
        today = today or date.today()
        return self._save_baseline(uid, cohort, missed, today - timedelta(days=1))

    def update_baseline(
        self, uid: str, cohort: str, missed: dict[str, Any], today: date | None = None
    ) -> AttendanceBaseline:
        """Edit the baseline; the new counts are taken as of today."""
        return self._save_baseline(uid, cohort, missed, today or date.today())

    def baseline(self, uid: str, cohort: str) -> AttendanceBaseline | None:
        return self.attendance_repo.get_baseline(uid, self._settings().term(cohort))

    def save_day_selections(
        self,
        uid: str,
        email: str,
        day: date,
        selections: list[AttendanceSelection | dict[str, Any]],
    ) -> AttendanceDaySelections:
        """Record the day's attended classes. An empty list is a valid submission."""
        cleaned = [
            s if isinstance(s, AttendanceSelection) else AttendanceSelection(**s)
            for s in selections
            if isinstance(s, AttendanceSelection) or (isinstance(s, dict) and s.get("subject"))
        ]
        return self.attendance_repo.save_day(uid, email, day, cleaned)

    def day_selections(self, uid: str, day: date) -> AttendanceDaySelections | None:
        return self.attendance_repo.get_day(uid, day)

    def report(
        self,
        uid: str,
        profile: UserProfile,
        by_date: ByDateMap | None = None,
        today: date | None = None,
    ) -> AttendanceReport:
        """Attendance from the term start (or baseline, or month start) up to today.

        When by_date is not given the viewer's routine is read through the
        aggregator. Juniors without a subject list get the subjects found in
        their schedule.
        """
        today = today or date.today()
        settings = self._settings()
        if by_date is None:
            aggregator = self.aggregator or ScheduleAggregator(settings, config=self.config)
            by_date = aggregator.read(profile).by_date

        baseline = self.attendance_repo.get_baseline(uid, settings.term(profile.cohort))
        start = resolve_window_start(settings.term_start(profile.cohort), baseline, today)
        subjects = profile.subjects or discover_subjects(by_date, [EventType.CLASS])
        return reconcile(
            by_date,
            subjects,
            start,
            today,
            baseline=baseline,
            today_selections=self.attendance_repo.get_day(uid, today),
        )
