import unittest
from datetime import date
from unittest.mock import MagicMock

from src.academics.config import AcademicsConfig
from src.academics.errors import InvalidProfileError
from src.academics.models import (
    EventType,
    ParseOutcome,
    RoutineSettings,
    UserProfile,
    make_entry,
)
from src.academics.schedule import (
    RequestGuard,
    ScheduleAggregator,
    day_window,
    discover_subjects,
    entries_for_day,
    month_days,
    month_grid,
    type_counts,
    upcoming_exams,
)

SENIOR_CSV = (
    ",Routine - Term V\n"
    "\n"
    ",Date,08:30 - 10:00,10:15 - 11:45,12:00 - 13:30\n"
    ',05/09/2025,"ERP (AG) (E&F)",MID TERM IFM,\n'
    ",06/09/2025,SCM sec F,,\n"
)

JUNIOR_CSV = (
    "Date,Day,09:00-10:30,10:45-12:15\n"
    '05/09/2025,Fri,Act [] [2][E] [Orientation Talk],"FIN [LCR 02] [AKS] [3][E,F]"\n'
)


def _config(**overrides):
    values = {"senior_routine_url": "", "junior_routine_url": "", "header_scan_rows": 10}
    values.update(overrides)
    return AcademicsConfig(**values)


def _fetcher(text):
    fetcher = MagicMock()
    fetcher.fetch_csv.return_value = text
    return fetcher


SENIOR_E = UserProfile(cohort="senior", section="E", subjects=["ERP", "IFM"])


class TestScheduleAggregator(unittest.TestCase):
    def test_reads_configured_routine(self):
        settings = RoutineSettings(senior_routine_url="https://example.org/senior.csv")
        fetcher = _fetcher(SENIOR_CSV)
        result = ScheduleAggregator(settings, fetcher, _config()).read(SENIOR_E)

        fetcher.fetch_csv.assert_called_once_with("https://example.org/senior.csv")
        self.assertTrue(result.ok)
        self.assertEqual(result.source_url, "https://example.org/senior.csv")
        self.assertEqual(
            [(e.subject, e.type) for e in result.entries_for(date(2025, 9, 5))],
            [("ERP", "class"), ("MID TERM IFM", "exam")],
        )
        self.assertEqual(result.entries_for("2025-09-06"), [])

    def test_profile_document_is_accepted(self):
        settings = RoutineSettings(junior_routine_url="https://example.org/junior.csv")
        result = ScheduleAggregator(settings, _fetcher(JUNIOR_CSV), _config()).read(
            {"cohort": "junior", "section": "f"}
        )
        self.assertEqual([e.subject for e in result.entries_for("2025-09-05")], ["FIN"])

    def test_malformed_profile_raises(self):
        aggregator = ScheduleAggregator(RoutineSettings(), _fetcher(""), _config())
        with self.assertRaises(InvalidProfileError):
            aggregator.read({"cohort": "alumni", "section": "E"})
        with self.assertRaises(InvalidProfileError):
            aggregator.read({"cohort": "senior", "section": "G"})

    def test_not_configured(self):
        fetcher = _fetcher(SENIOR_CSV)
        result = ScheduleAggregator(RoutineSettings(), fetcher, _config()).read(SENIOR_E)
        self.assertIs(result.outcome, ParseOutcome.NOT_CONFIGURED)
        self.assertEqual(result.by_date, {})
        fetcher.fetch_csv.assert_not_called()

    def test_environment_url_is_the_fallback(self):
        fetcher = _fetcher(SENIOR_CSV)
        config = _config(senior_routine_url="https://example.org/env.csv")
        result = ScheduleAggregator(RoutineSettings(), fetcher, config).read(SENIOR_E)
        self.assertTrue(result.ok)
        fetcher.fetch_csv.assert_called_once_with("https://example.org/env.csv")

    def test_fetch_failure_keeps_source_url(self):
        settings = RoutineSettings(senior_routine_url="https://example.org/senior.csv")
        result = ScheduleAggregator(settings, _fetcher(None), _config()).read(SENIOR_E)
        self.assertIs(result.outcome, ParseOutcome.FETCH_FAILED)
        self.assertEqual(result.source_url, "https://example.org/senior.csv")
        self.assertEqual(result.message, "Couldn't read the routine automatically.")

    def test_unrecognized_routine(self):
        settings = RoutineSettings(senior_routine_url="https://example.org/senior.csv")
        result = ScheduleAggregator(settings, _fetcher("Notice\nNo classes\n"), _config()).read(SENIOR_E)
        self.assertIs(result.outcome, ParseOutcome.NO_HEADER_FOUND)

    def test_parse_text_is_pure(self):
        aggregator = ScheduleAggregator(RoutineSettings(), _fetcher(None), _config())
        first = aggregator.parse_text(SENIOR_CSV, SENIOR_E)
        second = aggregator.parse_text(SENIOR_CSV, SENIOR_E)
        self.assertEqual(first, second)
        other = aggregator.parse_text(SENIOR_CSV, UserProfile(cohort="senior", section="F"))
        self.assertEqual([e.subject for e in other.entries_for("2025-09-06")], ["SCM"])
        self.assertIs(aggregator.parse_text("", SENIOR_E).outcome, ParseOutcome.EMPTY_GRID)

    def test_carriage_return_line_endings(self):
        text = ",Date,08:30 - 10:00,10:15 - 11:45,12:00 - 13:30\r,05/09/2025,ERP (AG) (E&F),,\r"
        aggregator = ScheduleAggregator(RoutineSettings(), _fetcher(None), _config())
        result = aggregator.parse_text(text, SENIOR_E)
        self.assertTrue(result.ok)
        self.assertEqual([e.subject for e in result.entries_for("2025-09-05")], ["ERP"])

    def test_unreadable_csv_is_an_empty_grid(self):
        text = SENIOR_CSV + ',07/09/2025,"' + "x" * 200_000 + '",,\n'
        settings = RoutineSettings(senior_routine_url="https://example.org/senior.csv")
        aggregator = ScheduleAggregator(settings, _fetcher(text), _config())

        self.assertIs(aggregator.parse_text(text, SENIOR_E).outcome, ParseOutcome.EMPTY_GRID)
        result = aggregator.read(SENIOR_E)
        self.assertIs(result.outcome, ParseOutcome.EMPTY_GRID)
        self.assertEqual(result.source_url, "https://example.org/senior.csv")


class TestRequestGuard(unittest.TestCase):
    def test_stale_completion_is_dropped(self):
        guard = RequestGuard()
        first = guard.issue()
        second = guard.issue()
        self.assertTrue(guard.commit(second, "fresh"))
        self.assertFalse(guard.commit(first, "stale"))
        self.assertEqual(guard.value, "fresh")

    def test_tokens_increase(self):
        guard = RequestGuard()
        tokens = [guard.issue() for _ in range(3)]
        self.assertEqual(tokens, sorted(set(tokens)))
        self.assertTrue(guard.is_current(tokens[-1]))
        self.assertFalse(guard.is_current(tokens[0]))


class TestViews(unittest.TestCase):
    def setUp(self):
        self.by_date = {
            "2025-09-05": [
                make_entry(EventType.CLASS, time="14:00-15:30", subject="SCM"),
                make_entry(EventType.CLASS, time="08:30-10:00", subject="ERP"),
                make_entry(EventType.EXAM, time="10:15-11:45", subject="MID TERM IFM"),
            ],
            "2025-09-04": [make_entry(EventType.SUB, time="TBA", subject="ERP Assignment due")],
            "2025-09-12": [make_entry(EventType.EXAM, time="09:00", subject="END SEM ERP")],
        }

    def test_entries_for_day_sorted_by_time(self):
        self.assertEqual(
            [e.subject for e in entries_for_day(self.by_date, date(2025, 9, 5))],
            ["ERP", "MID TERM IFM", "SCM"],
        )
        self.assertEqual(entries_for_day(self.by_date, date(2025, 9, 6)), [])

    def test_day_window(self):
        window = day_window(self.by_date, date(2025, 9, 5))
        self.assertEqual(list(window), ["yesterday", "today", "tomorrow"])
        self.assertEqual(window["yesterday"].day, date(2025, 9, 4))
        self.assertEqual(len(window["yesterday"].entries), 1)
        self.assertEqual(len(window["today"].entries), 3)
        self.assertEqual(window["tomorrow"].entries, [])

    def test_month_grid(self):
        grid = month_grid(date(2025, 9, 15))
        self.assertEqual(len(grid), 42)
        self.assertEqual(grid[0], date(2025, 9, 1))
        october = month_grid(date(2025, 10, 1))
        self.assertEqual(october[0], date(2025, 9, 29))
        self.assertTrue(all(d.weekday() == 0 for d in october[::7]))

    def test_month_days_carry_entries(self):
        days = month_days(self.by_date, date(2025, 9, 1))
        self.assertEqual(len(days), 42)
        by_day = {d.day: d for d in days}
        self.assertEqual(len(by_day[date(2025, 9, 5)].entries), 3)
        self.assertEqual(by_day[date(2025, 9, 6)].entries, [])

    def test_type_counts(self):
        counts = type_counts(self.by_date["2025-09-05"])
        self.assertEqual(counts, {EventType.CLASS: 2, EventType.EXAM: 1, EventType.SUB: 0})

    def test_upcoming_exams(self):
        groups = upcoming_exams(self.by_date)
        self.assertEqual([g.day for g in groups], [date(2025, 9, 5), date(2025, 9, 12)])
        self.assertEqual([e.subject for e in groups[0].entries], ["MID TERM IFM"])
        later = upcoming_exams(self.by_date, since=date(2025, 9, 6))
        self.assertEqual([g.day for g in later], [date(2025, 9, 12)])

    def test_discover_subjects(self):
        self.assertEqual(discover_subjects(self.by_date, [EventType.CLASS]), ["ERP", "SCM"])
        self.assertIn("END SEM ERP", discover_subjects(self.by_date))
        self.assertEqual(discover_subjects({}), [])


if __name__ == "__main__":
    unittest.main()
