import unittest

from src.academics.models import ParseOutcome, UserProfile
from src.academics.parsers.grid import (
    JUNIOR_LAYOUT,
    SENIOR_LAYOUT,
    find_header_row,
    parse_junior_grid,
    parse_senior_grid,
    slot_columns,
)

SENIOR_HEADER = ["", "Date", "08:30 - 10:00", "10:15 - 11:45", "12:00 - 13:30", "14:30 - 16:00"]
JUNIOR_HEADER = ["Date", "Day", "09:00-10:30", "10:45-12:15", "13:00-14:30"]


def senior(section="E", subjects=None):
    return UserProfile(cohort="senior", section=section, subjects=subjects or [])


def junior(section="E"):
    return UserProfile(cohort="junior", section=section)


def senior_rows(*body):
    return [["", "Routine - Term V"], [], SENIOR_HEADER, *body]


class TestHeaderDiscovery(unittest.TestCase):
    def test_header_found_after_title_rows(self):
        self.assertEqual(find_header_row(senior_rows(), SENIOR_LAYOUT), 2)

    def test_header_beyond_scan_window_is_not_found(self):
        rows = [[""]] * 12 + [SENIOR_HEADER]
        self.assertIsNone(find_header_row(rows, SENIOR_LAYOUT))
        self.assertEqual(find_header_row(rows, SENIOR_LAYOUT, scan_rows=13), 12)

    def test_senior_needs_three_labels(self):
        rows = [["", "Date", "08:30-10:00", "10:15-11:45"]]
        self.assertIsNone(find_header_row(rows, SENIOR_LAYOUT))

    def test_junior_needs_two_labels(self):
        self.assertEqual(find_header_row([JUNIOR_HEADER[:4]], JUNIOR_LAYOUT), 0)

    def test_slot_label_taken_from_cell_below(self):
        rows = [
            ["", "Date", "Slot 1", "10:15-11:45", "12:00-13:30", "14:30-16:00"],
            ["", "", "08:30-10:00", "", "", ""],
        ]
        slots = slot_columns(rows, 0, SENIOR_LAYOUT)
        self.assertEqual(
            [(s.column, s.label) for s in slots],
            [(2, "08:30-10:00"), (3, "10:15-11:45"), (4, "12:00-13:30"), (5, "14:30-16:00")],
        )


class TestParseSeniorGrid(unittest.TestCase):
    def test_section_specific_class(self):
        rows = senior_rows(["", "05/09/2025", "ERP (AG) (E&F)", "", ""])
        result = parse_senior_grid(rows, senior("E", ["ERP"]))
        self.assertIs(result.outcome, ParseOutcome.OK)
        entries = result.by_date["2025-09-05"]
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].subject, "ERP")
        self.assertEqual(entries[0].type, "class")
        self.assertEqual(entries[0].time, "08:30 - 10:00")

    def test_year_first_date_cell(self):
        rows = senior_rows(["", "2025/09/05", "ERP (AG) (E&F)", "", ""])
        result = parse_senior_grid(rows, senior("E", ["ERP"]))
        self.assertEqual(list(result.by_date), ["2025-09-05"])
        self.assertEqual([e.subject for e in result.by_date["2025-09-05"]], ["ERP"])

    def test_section_filter(self):
        rows = senior_rows(["", "05/09/2025", "IFM sec E, MKT sec F", "OMCR common"])
        e_view = parse_senior_grid(rows, senior("E")).by_date["2025-09-05"]
        f_view = parse_senior_grid(rows, senior("F")).by_date["2025-09-05"]
        self.assertEqual([x.subject for x in e_view], ["IFM", "OMCR"])
        self.assertEqual([x.subject for x in f_view], ["MKT", "OMCR"])

    def test_picked_subjects_filter_classes_strictly_and_exams_loosely(self):
        rows = senior_rows(["", "05/09/2025", "IFM", "IFM QUIZ (E&F)", "MID TERM IFM", "ERP"])
        result = parse_senior_grid(rows, senior("E", ["IFM"]))
        entries = result.by_date["2025-09-05"]
        self.assertEqual(
            [(x.subject, x.type) for x in entries],
            [("IFM", "class"), ("IFM QUIZ", "exam"), ("MID TERM IFM", "exam")],
        )

    def test_vertical_carry_forward_is_deduplicated(self):
        rows = senior_rows(
            ["", "05/09/2025", "ERP (E&F)", ""],
            ["", "", "", "SCM"],
            ["", "", "", ""],
        )
        entries = parse_senior_grid(rows, senior("E")).by_date["2025-09-05"]
        self.assertEqual([(x.time, x.subject) for x in entries], [
            ("08:30 - 10:00", "ERP"),
            ("10:15 - 11:45", "SCM"),
        ])

    def test_no_duplicate_subject_section_per_slot(self):
        rows = senior_rows(
            ["", "05/09/2025", "ERP (E&F)"],
            ["", "05/09/2025", "ERP (E&F)"],
            ["", "06/09/2025", "ERP (E&F), ERP (E)"],
        )
        by_date = parse_senior_grid(rows, senior("E")).by_date
        for key, entries in by_date.items():
            signatures = [(e.time, e.subject, e.section) for e in entries]
            self.assertEqual(len(signatures), len(set(signatures)), key)
        self.assertEqual(len(by_date["2025-09-05"]), 1)

    def test_unparseable_date_resets_the_block(self):
        rows = senior_rows(
            ["", "05/09/2025", "ERP (E&F)"],
            ["", "TBD", "MKT (E&F)"],
            ["", "", "SCM"],
            ["", "06/09/2025", ""],
        )
        by_date = parse_senior_grid(rows, senior("E")).by_date
        self.assertEqual([e.subject for e in by_date["2025-09-05"]], ["ERP"])
        self.assertNotIn("2025-09-06", by_date)
        self.assertEqual(list(by_date), ["2025-09-05"])

    def test_new_date_starts_fresh_carry(self):
        rows = senior_rows(
            ["", "05/09/2025", "ERP"],
            ["", "06/09/2025", ""],
        )
        by_date = parse_senior_grid(rows, senior("E")).by_date
        self.assertNotIn("2025-09-06", by_date)

    def test_idempotent(self):
        rows = senior_rows(
            ["", "05/09/2025", "ERP (AG) (E&F)", "IFM sec E"],
            ["", "", "", "MID TERM IFM"],
        )
        profile = senior("E", ["ERP", "IFM"])
        self.assertEqual(parse_senior_grid(rows, profile), parse_senior_grid(rows, profile))

    def test_outcomes(self):
        self.assertIs(parse_senior_grid([], senior()).outcome, ParseOutcome.EMPTY_GRID)
        self.assertIs(parse_senior_grid([["", ""], []], senior()).outcome, ParseOutcome.EMPTY_GRID)
        rows = [["", "Date", "Mon", "Tue"], ["", "05/09/2025", "ERP"]]
        result = parse_senior_grid(rows, senior())
        self.assertIs(result.outcome, ParseOutcome.NO_HEADER_FOUND)
        self.assertEqual(result.by_date, {})
        self.assertEqual(result.message, "Routine format not recognized.")


class TestParseJuniorGrid(unittest.TestCase):
    def rows(self):
        return [
            ["Junior routine"],
            JUNIOR_HEADER,
            ["05/09/2025", "Fri", "Act [] [2][E] [Orientation Talk]", "FIN [LCR 02] [AKS] [3][E,F]"],
            ["", "", "", "ERP (E&F)"],
        ]

    def test_activity_is_an_exam_for_its_section(self):
        entries = parse_junior_grid(self.rows(), junior("E")).by_date["2025-09-05"]
        self.assertEqual(
            [(e.subject, e.type, e.room) for e in entries],
            [("Orientation Talk", "exam", ""), ("FIN", "class", "LCR 02")],
        )

    def test_other_section_does_not_see_it(self):
        entries = parse_junior_grid(self.rows(), junior("F")).by_date["2025-09-05"]
        self.assertEqual([e.subject for e in entries], ["FIN"])
        self.assertNotIn("2025-09-05", parse_junior_grid(self.rows(), junior("G")).by_date)

    def test_picked_subjects_are_ignored_for_juniors(self):
        profile = UserProfile(cohort="junior", section="E", subjects=["XYZ"])
        entries = parse_junior_grid(self.rows(), profile).by_date["2025-09-05"]
        self.assertEqual(len(entries), 2)


if __name__ == "__main__":
    unittest.main()
