import argparse
import io
import unittest
from contextlib import redirect_stderr

from scripts.show_routine import _build_profile, main
from src.academics.errors import InvalidProfileError


def _args(**overrides):
    values = {
        "source": None,
        "cohort": "senior",
        "section": "E",
        "subject": [],
        "today": None,
        "table": False,
        "exams": False,
        "attendance": False,
        "baseline": None,
        "attended": [],
    }
    values.update(overrides)
    return argparse.Namespace(**values)


class TestBuildProfile(unittest.TestCase):
    def test_valid_profile(self):
        profile = _build_profile(_args(section="f", subject=["ERP", " "]))
        self.assertEqual(profile.cohort, "senior")
        self.assertEqual(profile.section, "F")
        self.assertEqual(profile.subjects, ["ERP"])

    def test_section_outside_cohort(self):
        with self.assertRaises(InvalidProfileError):
            _build_profile(_args(section="G"))

    def test_junior_section_g_is_valid(self):
        self.assertEqual(_build_profile(_args(cohort="junior", section="G")).section, "G")


class TestMain(unittest.TestCase):
    def test_invalid_section_exits_with_one(self):
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            code = main(_args(section="G"))
        self.assertEqual(code, 1)
        self.assertIn("Malformed profile", stderr.getvalue())
