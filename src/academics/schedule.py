"""Schedule aggregation: the one place routines are fetched and parsed.

Every display surface (yesterday/today/tomorrow cards, the month calendar,
the exam list, attendance counters) reads the ByDateMap produced here and
never parses a sheet itself.

An aggregator is built per request or session from the routine settings it
needs; it holds no state between reads, so two viewers can be served
concurrently. Callers that may have several reads in flight use a
RequestGuard so a late, stale completion cannot replace a newer result.
"""

import csv
from collections import Counter
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Any, Generic, TypeVar

from src.academics.config import AcademicsConfig, get_config
from src.academics.logging import get_logger, viewer_context
from src.academics.models import (
    SENIOR,
    ByDateMap,
    DaySchedule,
    EventType,
    ParseOutcome,
    RoutineSettings,
    ScheduleEntry,
    ScheduleResult,
    UserProfile,
)
from src.academics.parsers.dates import date_key, time_sort_key
from src.academics.parsers.grid import LAYOUTS, parse_grid
from src.academics.source import RoutineFetcher, split_rows

log = get_logger(__name__)

T = TypeVar("T")


class ScheduleAggregator:
    """Resolves, fetches and parses the routine for a viewer.

    Always returns a ScheduleResult; "no data" conditions are outcomes, not
    exceptions. Only a malformed profile raises (InvalidProfileError).
    """

    def __init__(
        self,
        settings: RoutineSettings,
        fetcher: RoutineFetcher | None = None,
        config: AcademicsConfig | None = None,
    ) -> None:
        self.settings = settings
        self.config = config or get_config()
        self.fetcher = fetcher or RoutineFetcher(self.config)

    @staticmethod
    def _profile(profile: UserProfile | dict[str, Any]) -> UserProfile:
        if isinstance(profile, UserProfile):
            return profile
        return UserProfile.from_document(profile)

    def routine_url(self, cohort: str) -> str:
        """Configured routine URL for a cohort, falling back to the environment."""
        url = self.settings.routine_url(cohort)
        if url:
            return url
        if cohort == SENIOR:
            return self.config.senior_routine_url
        return self.config.junior_routine_url

    def parse_text(self, text: str, profile: UserProfile | dict[str, Any]) -> ScheduleResult:
        """Parse already-fetched CSV text for a viewer (pure)."""
        viewer = self._profile(profile)
        try:
            rows = split_rows(text)
        except csv.Error as e:
            log.warning("routine_csv_unreadable", cohort=viewer.cohort, error=str(e))
            return ScheduleResult(outcome=ParseOutcome.EMPTY_GRID)
        if not rows:
            return ScheduleResult(outcome=ParseOutcome.EMPTY_GRID)
        return parse_grid(
            rows,
            viewer,
            LAYOUTS[viewer.cohort],
            scan_rows=self.config.header_scan_rows,
        )

    def read(self, profile: UserProfile | dict[str, Any]) -> ScheduleResult:
        """Fetch and parse the viewer's routine.

        Raises:
            InvalidProfileError: If profile is a malformed profile document.
        """
        viewer = self._profile(profile)
        with viewer_context(viewer.cohort, viewer.section):
            url = self.routine_url(viewer.cohort)
            if not url:
                log.info("routine_not_configured")
                return ScheduleResult(outcome=ParseOutcome.NOT_CONFIGURED)

            text = self.fetcher.fetch_csv(url)
            if not text:
                return ScheduleResult(outcome=ParseOutcome.FETCH_FAILED, source_url=url)

            result = self.parse_text(text, viewer).model_copy(update={"source_url": url})
            log.info(
                "schedule_parsed",
                outcome=result.outcome.value,
                dates=len(result.by_date),
            )
            return result


class RequestGuard(Generic[T]):
    """Keeps only the newest completion among overlapping requests.

    token = guard.issue() before starting work; guard.commit(token, value)
    when it finishes. Commits from any token but the latest are dropped.
    """

    def __init__(self) -> None:
        self._latest = 0
        self.value: T | None = None

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def commit(self, token: int, value: T) -> bool:
        if not self.is_current(token):
            log.debug("stale_result_dropped", token=token, latest=self._latest)
            return False
        self.value = value
        return True


def entries_for_day(by_date: ByDateMap, day: date) -> list[ScheduleEntry]:
    """The day's entries ordered by slot start time (ties keep sheet order)."""
    return sorted(by_date.get(date_key(day), []), key=lambda e: time_sort_key(e.time))


def day_window(by_date: ByDateMap, today: date) -> dict[str, DaySchedule]:
    """Yesterday / today / tomorrow cards."""
    window = {
        "yesterday": today - timedelta(days=1),
        "today": today,
        "tomorrow": today + timedelta(days=1),
    }
    return {
        label: DaySchedule(day=day, entries=entries_for_day(by_date, day))
        for label, day in window.items()
    }


def month_grid(month: date) -> list[date]:
    """42 dates (six Monday-first weeks) covering the month containing `month`."""
    first = month.replace(day=1)
    start = first - timedelta(days=first.weekday())
    return [start + timedelta(days=i) for i in range(42)]


def month_days(by_date: ByDateMap, month: date) -> list[DaySchedule]:
    """Calendar cells for a month view, one DaySchedule per grid date."""
    return [DaySchedule(day=d, entries=entries_for_day(by_date, d)) for d in month_grid(month)]


def type_counts(entries: Iterable[ScheduleEntry]) -> dict[EventType, int]:
    counts = Counter(EventType(e.type) for e in entries)
    return {t: counts.get(t, 0) for t in EventType}


def upcoming_exams(by_date: ByDateMap, since: date | None = None) -> list[DaySchedule]:
    """Exam/event entries grouped by date, in date then time order."""
    groups: list[DaySchedule] = []
    for key in sorted(by_date):
        day = date.fromisoformat(key)
        if since is not None and day < since:
            continue
        exams = [e for e in entries_for_day(by_date, day) if e.type == EventType.EXAM]
        if exams:
            groups.append(DaySchedule(day=day, entries=exams))
    return groups


def discover_subjects(by_date: ByDateMap, types: Iterable[EventType] | None = None) -> list[str]:
    """Distinct subjects in the schedule (junior subject lists are derived this way)."""
    wanted = {EventType(t) for t in types} if types is not None else set(EventType)
    return sorted(
        {e.subject for entries in by_date.values() for e in entries if EventType(e.type) in wanted}
    )
