"""Grid parsers that turn a routine spreadsheet into a ByDateMap.

Routine sheets are not laid out the same twice: editors insert title rows,
notes and blank lines freely. Nothing about the header position is assumed;
it is discovered by scanning for a run of time-slot labels.

Senior sheet: dates in column B, slot labels in C..J, header needs >= 3 labels.
Junior sheet: dates in column A, slot labels in C..G, header needs >= 2 labels.

Date cells are merged vertically, so an empty date cell continues the
current date block. Class cells are merged too: an empty slot cell reuses
the last text seen in that column within the block, and entries are
deduplicated per (date, slot) so a merged cell yields one entry.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from src.academics.logging import get_logger
from src.academics.models import (
    JUNIOR,
    SENIOR,
    CellEntry,
    ParseOutcome,
    ScheduleResult,
    UserProfile,
    make_entry,
)
from src.academics.parsers.cells import (
    extract_junior_entries,
    extract_senior_entries,
    section_visible,
)
from src.academics.parsers.dates import date_key, looks_like_time_label, parse_date_loose
from src.academics.parsers.subjects import classify_type, subject_matches_picked

log = get_logger(__name__)

DEFAULT_HEADER_SCAN_ROWS = 10

Row = Sequence[str]


@dataclass(frozen=True)
class GridLayout:
    """Where one cohort's routine keeps its dates and slots."""

    cohort: str
    date_column: int
    first_slot_column: int
    last_slot_column: int  # inclusive
    min_header_hits: int
    extract: Callable[[str], list[CellEntry]]
    filter_picked_subjects: bool

    @property
    def slot_window(self) -> range:
        return range(self.first_slot_column, self.last_slot_column + 1)


SENIOR_LAYOUT = GridLayout(
    cohort=SENIOR,
    date_column=1,
    first_slot_column=2,
    last_slot_column=9,
    min_header_hits=3,
    extract=extract_senior_entries,
    filter_picked_subjects=True,
)

JUNIOR_LAYOUT = GridLayout(
    cohort=JUNIOR,
    date_column=0,
    first_slot_column=2,
    last_slot_column=6,
    min_header_hits=2,
    extract=extract_junior_entries,
    filter_picked_subjects=False,
)

LAYOUTS: dict[str, GridLayout] = {SENIOR: SENIOR_LAYOUT, JUNIOR: JUNIOR_LAYOUT}


@dataclass(frozen=True)
class SlotColumn:
    column: int
    label: str


@dataclass
class _DateBlock:
    """Parse state for the rows sharing one (merged) date cell."""

    key: str
    carry: dict[int, str] = field(default_factory=dict)
    seen: dict[str, set[tuple[str, str]]] = field(default_factory=dict)


def _cell(row: Row, column: int) -> str:
    if column >= len(row):
        return ""
    return str(row[column] or "").strip()


def find_header_row(
    rows: Sequence[Row], layout: GridLayout, *, scan_rows: int = DEFAULT_HEADER_SCAN_ROWS
) -> int | None:
    """Index of the first row with enough time labels in the layout's slot window."""
    for index, row in enumerate(rows[:scan_rows]):
        hits = sum(1 for c in layout.slot_window if looks_like_time_label(_cell(row, c)))
        if hits >= layout.min_header_hits:
            return index
    return None


def slot_columns(rows: Sequence[Row], header_index: int, layout: GridLayout) -> list[SlotColumn]:
    """Slot columns of the header row.

    A header cell that is not itself a time label ("Slot 3", blank) takes the
    label from the cell directly below it when that one is.
    """
    header = rows[header_index]
    below = rows[header_index + 1] if header_index + 1 < len(rows) else ()
    slots: list[SlotColumn] = []
    for column in layout.slot_window:
        label = _cell(header, column)
        if looks_like_time_label(label):
            slots.append(SlotColumn(column, label))
            continue
        probe = _cell(below, column)
        if looks_like_time_label(probe):
            slots.append(SlotColumn(column, probe))
    return slots


def parse_grid(
    rows: Sequence[Row],
    profile: UserProfile,
    layout: GridLayout,
    *,
    scan_rows: int = DEFAULT_HEADER_SCAN_ROWS,
) -> ScheduleResult:
    """Parse a routine grid into a ByDateMap for one viewer.

    Pure function of (rows, profile, layout): no state survives between calls.

    Args:
        rows: Spreadsheet rows as lists of cell text.
        profile: Viewer whose section (and, for seniors, picked subjects) filter entries.
        layout: Cohort layout (SENIOR_LAYOUT or JUNIOR_LAYOUT).
        scan_rows: Leading rows searched for the header.

    Returns:
        ScheduleResult whose outcome explains an empty map.
    """
    if not any(_cell(row, c) for row in rows for c in range(len(row))):
        return ScheduleResult(outcome=ParseOutcome.EMPTY_GRID)

    header_index = find_header_row(rows, layout, scan_rows=scan_rows)
    if header_index is None:
        log.info("header_row_not_found", cohort=layout.cohort, rows=len(rows))
        return ScheduleResult(outcome=ParseOutcome.NO_HEADER_FOUND)

    slots = slot_columns(rows, header_index, layout)
    if not slots:
        log.info("slot_columns_not_found", cohort=layout.cohort, header_row=header_index)
        return ScheduleResult(outcome=ParseOutcome.NO_HEADER_FOUND)

    picked = profile.subjects if layout.filter_picked_subjects else []
    by_date: dict[str, list] = {}
    block: _DateBlock | None = None

    for row in rows[header_index + 1 :]:
        raw_date = _cell(row, layout.date_column)
        if raw_date:
            parsed = parse_date_loose(raw_date)
            if parsed is None:
                # Stray note/footer row: forget the block until the next real date
                block = None
                continue
            key = date_key(parsed)
            if block is None or block.key != key:
                block = _DateBlock(key)
        elif block is None:
            continue

        for slot in slots:
            text = _cell(row, slot.column) or block.carry.get(slot.column, "")
            if not text:
                continue
            block.carry[slot.column] = text

            seen = block.seen.setdefault(slot.label, set())
            for entry in layout.extract(text):
                if not section_visible(entry.section, profile.section):
                    continue
                type_ = entry.type or classify_type(entry.subject)
                if picked and not subject_matches_picked(entry.subject, type_, picked):
                    continue
                signature = (entry.subject, entry.section or "")
                if signature in seen:
                    continue
                seen.add(signature)
                by_date.setdefault(block.key, []).append(
                    make_entry(
                        type_,
                        time=slot.label,
                        subject=entry.subject,
                        room=entry.room,
                        section=entry.section,
                    )
                )

    log.debug(
        "grid_parsed",
        cohort=layout.cohort,
        header_row=header_index,
        slots=len(slots),
        dates=len(by_date),
        entries=sum(len(v) for v in by_date.values()),
    )
    return ScheduleResult(by_date=by_date, outcome=ParseOutcome.OK)


def parse_senior_grid(
    rows: Sequence[Row], profile: UserProfile, *, scan_rows: int = DEFAULT_HEADER_SCAN_ROWS
) -> ScheduleResult:
    return parse_grid(rows, profile, SENIOR_LAYOUT, scan_rows=scan_rows)


def parse_junior_grid(
    rows: Sequence[Row], profile: UserProfile, *, scan_rows: int = DEFAULT_HEADER_SCAN_ROWS
) -> ScheduleResult:
    return parse_grid(rows, profile, JUNIOR_LAYOUT, scan_rows=scan_rows)
