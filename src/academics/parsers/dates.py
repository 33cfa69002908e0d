"""Tolerant date parsing and time-slot label recognition for routine sheets.

Date cells in hand-maintained routines come in whatever shape the editor
typed: "2025-09-05", "05/09/2025", "5-9-25", "Fri, 5 Sep 2025 09:00".
Every reading resolves to a plain calendar date (no time zone), so a day
can never drift across midnight.
"""

import re
from datetime import date

from dateutil.parser import ParserError
from dateutil.parser import parse as dtparse

# Trailing "09:00", "9.30:00 am" fragments some exports append to date cells
_TRAILING_TIME_RE = re.compile(r"\s+\d{1,2}[:.]\d{2}(?::\d{2})?\s*(?:am|pm)?\s*$", re.I)
_YEAR_FIRST_RE = re.compile(r"^(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})$")
_YEAR_PREFIX_RE = re.compile(r"^\d{4}\b")
_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?$")
_MONTH_FIRST_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2,4})$")

_TIME_LABEL_RE = re.compile(
    r"^\s*\d{1,2}[:.]\d{2}(?::\d{2})?"
    r"(?:\s*(?:-|–|—|to)\s*\d{1,2}[:.]\d{2}(?::\d{2})?)?"
    r"\s*(?:am|pm)?\s*$",
    re.I,
)
_FIRST_CLOCK_RE = re.compile(r"(\d{1,2})[:.](\d{2})")


def _expand_year(raw: str | None, today: date | None = None) -> int:
    """Two-digit years above 50 are 19xx, the rest 20xx; no year means this year."""
    if not raw:
        return (today or date.today()).year
    if len(raw) == 2:
        value = int(raw)
        return 1900 + value if value > 50 else 2000 + value
    return int(raw)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_loose(raw: object, *, today: date | None = None) -> date | None:
    """Parse a date cell, returning None when no reading fits.

    Tried in order: yyyy-mm-dd (also with / or .), dd/mm[/yy|yyyy] (or with
    dashes), mm/dd/yy[yy], then a generic dateutil parse that reads a leading
    four-digit year as year-first.

    Args:
        raw: Cell value.
        today: Reference date for year-less cells (defaults to today).

    Returns:
        The calendar date, or None for unparseable text.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    text = _TRAILING_TIME_RE.sub("", text).strip()

    m = _YEAR_FIRST_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _DAY_FIRST_RE.match(text)
    if m:
        dd, mm, yy = m.groups()
        parsed = _safe_date(_expand_year(yy, today), int(mm), int(dd))
        if parsed is not None:
            return parsed

    m = _MONTH_FIRST_RE.match(text)
    if m:
        mm, dd, yy = m.groups()
        parsed = _safe_date(_expand_year(yy, today), int(mm), int(dd))
        if parsed is not None:
            return parsed

    # Bare numbers are row counters; digit-free text ("Monday", "TBD") is never a date
    if text.isdigit() or not any(ch.isdigit() for ch in text):
        return None

    try:
        year_first = bool(_YEAR_PREFIX_RE.match(text))
        return dtparse(text, dayfirst=not year_first, yearfirst=year_first).date()
    except (ParserError, ValueError, OverflowError):
        return None


def date_key(day: date) -> str:
    """ByDateMap key for a date (YYYY-MM-DD)."""
    return day.isoformat()


def looks_like_time_label(value: object) -> bool:
    """True for slot labels like "08:00", "8.30 to 10:00 AM", "14:00-15:30"."""
    if value is None:
        return False
    return bool(_TIME_LABEL_RE.match(str(value)))


def time_sort_key(label: str) -> int:
    """Minutes since midnight of the label's first H:MM; unparseable labels sort last."""
    m = _FIRST_CLOCK_RE.search(label or "")
    if not m:
        return 9999
    return int(m.group(1)) * 60 + int(m.group(2))
