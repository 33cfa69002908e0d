"""Pydantic models for routine, schedule and attendance data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Documents read from the store use camelCase keys; the from_document /
to_document helpers translate them.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.academics.errors import InvalidProfileError

SENIOR = "senior"
JUNIOR = "junior"

# Sections a viewer of each cohort may belong to
COHORT_SECTIONS: dict[str, frozenset[str]] = {
    SENIOR: frozenset({"E", "F"}),
    JUNIOR: frozenset({"E", "F", "G"}),
}

DEFAULT_TERMS: dict[str, int] = {SENIOR: 5, JUNIOR: 2}
DEFAULT_REMINDER_TIME = "09:00"


class EventType(str, Enum):
    """What a schedule entry represents. Only CLASS counts toward attendance."""

    CLASS = "class"
    EXAM = "exam"
    SUB = "sub"  # submission / deadline


class CellEntry(BaseModel):
    """One entry extracted from a single spreadsheet cell, before filtering."""

    model_config = ConfigDict(frozen=True)

    subject: str
    section: str | None = None  # None = common to every section
    room: str = ""
    type: EventType | None = None


class ScheduleEntry(BaseModel):
    """A dated timetable item. Produced by the grid parsers, never mutated."""

    model_config = ConfigDict(frozen=True)

    time: str  # slot label from the header row, e.g. "08:30 - 10:00"
    subject: str  # canonical subject (or exam/event text)
    room: str = ""
    section: str | None = None  # section tag the entry was produced for


class ClassSession(ScheduleEntry):
    type: Literal["class"] = "class"


class ExamEvent(ScheduleEntry):
    type: Literal["exam"] = "exam"


class Submission(ScheduleEntry):
    type: Literal["sub"] = "sub"


ParsedEntry = Annotated[
    Union[ClassSession, ExamEvent, Submission], Field(discriminator="type")
]

ByDateMap = dict[str, list[ParsedEntry]]

_ENTRY_TYPES: dict[EventType, type[ScheduleEntry]] = {
    EventType.CLASS: ClassSession,
    EventType.EXAM: ExamEvent,
    EventType.SUB: Submission,
}


def make_entry(
    type_: EventType | str,
    *,
    time: str,
    subject: str,
    room: str = "",
    section: str | None = None,
) -> ScheduleEntry:
    """Build the tagged entry variant matching type_."""
    cls = _ENTRY_TYPES[EventType(type_)]
    return cls(time=time, subject=subject, room=room or "", section=section)


class ParseOutcome(str, Enum):
    """Why a schedule came out the way it did."""

    OK = "ok"
    NO_HEADER_FOUND = "no_header_found"
    FETCH_FAILED = "fetch_failed"
    EMPTY_GRID = "empty_grid"
    NOT_CONFIGURED = "not_configured"

    @property
    def message(self) -> str:
        return _OUTCOME_MESSAGES[self]


_OUTCOME_MESSAGES: dict[ParseOutcome, str] = {
    ParseOutcome.OK: "",
    ParseOutcome.NO_HEADER_FOUND: "Routine format not recognized.",
    ParseOutcome.FETCH_FAILED: "Couldn't read the routine automatically.",
    ParseOutcome.EMPTY_GRID: "Routine was empty.",
    ParseOutcome.NOT_CONFIGURED: "Routine not available yet.",
}


class ScheduleResult(BaseModel):
    """A ByDateMap together with the reason it may be empty.

    source_url is kept so a UI can offer the raw routine as an escape hatch
    when the outcome is not OK.
    """

    by_date: dict[str, list[ParsedEntry]] = Field(default_factory=dict)
    outcome: ParseOutcome = ParseOutcome.OK
    source_url: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is ParseOutcome.OK

    @property
    def message(self) -> str:
        return self.outcome.message

    def entries_for(self, day: date | str) -> list[ScheduleEntry]:
        key = day.isoformat() if isinstance(day, date) else day
        return list(self.by_date.get(key, []))


class DaySchedule(BaseModel):
    """One day's entries, ordered by slot time, for a card or day panel."""

    day: date
    entries: list[ParsedEntry] = Field(default_factory=list)


class UserProfile(BaseModel):
    """The viewer's cohort, section and picked subjects (read-only here)."""

    cohort: Literal["senior", "junior"]
    section: str
    subjects: list[str] = Field(default_factory=list)

    @field_validator("section", mode="before")
    @classmethod
    def _normalize_section(cls, value: Any) -> str:
        return str(value or "").strip().upper()

    @field_validator("subjects", mode="before")
    @classmethod
    def _clean_subjects(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return [str(s).strip() for s in value if str(s or "").strip()]

    @model_validator(mode="after")
    def _section_in_cohort(self) -> "UserProfile":
        allowed = COHORT_SECTIONS[self.cohort]
        if self.section not in allowed:
            raise ValueError(
                f"section {self.section!r} is not one of {sorted(allowed)} for {self.cohort}"
            )
        return self

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "UserProfile":
        """Validate a stored profile document.

        Raises:
            InvalidProfileError: If cohort or section are missing or invalid.
        """
        try:
            return cls(
                cohort=doc.get("cohort"),
                section=doc.get("section"),
                subjects=doc.get("subjects") or [],
            )
        except ValidationError as e:
            raise InvalidProfileError(f"Malformed profile: {e}") from e


def _first(doc: dict[str, Any], *keys: str) -> Any:
    """First truthy value among keys (settings docs carry legacy aliases)."""
    for key in keys:
        value = doc.get(key)
        if value:
            return value
    return None


def _as_term(value: Any, default: int) -> int:
    try:
        term = int(value)
    except (TypeError, ValueError):
        return default
    return term or default


def _as_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


class RoutineSettings(BaseModel):
    """The settings/routine document maintained by the academic committee."""

    senior_routine_url: str = ""
    junior_routine_url: str = ""
    senior_term: int = DEFAULT_TERMS[SENIOR]
    junior_term: int = DEFAULT_TERMS[JUNIOR]
    senior_term_start: date | None = None
    junior_term_start: date | None = None
    reminder_time: str = DEFAULT_REMINDER_TIME

    @classmethod
    def from_document(cls, doc: dict[str, Any] | None) -> "RoutineSettings":
        doc = doc or {}
        legacy_url = doc.get("routineUrl") or ""
        return cls(
            senior_routine_url=_first(doc, "seniorRoutineUrl", "seniorUrl") or legacy_url,
            junior_routine_url=_first(doc, "juniorRoutineUrl", "juniorUrl") or legacy_url,
            senior_term=_as_term(_first(doc, "seniorTerm", "termSenior"), DEFAULT_TERMS[SENIOR]),
            junior_term=_as_term(_first(doc, "juniorTerm", "termJunior"), DEFAULT_TERMS[JUNIOR]),
            senior_term_start=_as_date(_first(doc, "termSeniorStart", "seniorTermStart")),
            junior_term_start=_as_date(_first(doc, "termJuniorStart", "juniorTermStart")),
            reminder_time=str(doc.get("reminderTime") or DEFAULT_REMINDER_TIME),
        )

    def routine_url(self, cohort: str) -> str:
        return self.senior_routine_url if cohort == SENIOR else self.junior_routine_url

    def term(self, cohort: str) -> int:
        return self.senior_term if cohort == SENIOR else self.junior_term

    def term_start(self, cohort: str) -> date | None:
        return self.senior_term_start if cohort == SENIOR else self.junior_term_start


class AttendanceBaseline(BaseModel):
    """Classes missed before tracking began, per subject, for one term."""

    term: int
    as_of: date | None = None
    missed: dict[str, int] = Field(default_factory=dict)

    @field_validator("missed", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> dict[str, int]:
        out: dict[str, int] = {}
        for subject, count in (value or {}).items():
            try:
                out[str(subject)] = max(0, int(count))
            except (TypeError, ValueError):
                out[str(subject)] = 0
        return out

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "AttendanceBaseline":
        return cls(
            term=_as_term(doc.get("term"), 0),
            as_of=_as_date(doc.get("asOf")),
            missed=doc.get("missed") or {},
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "asOf": self.as_of.isoformat() if self.as_of else None,
            "missed": dict(self.missed),
        }


class AttendanceSelection(BaseModel):
    """One class the viewer reported attending."""

    subject: str
    time: str = ""


class AttendanceDaySelections(BaseModel):
    """The viewer's self-reported attendance for one day."""

    day: date
    selections: list[AttendanceSelection] = Field(default_factory=list)
    submitted: bool = False

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "AttendanceDaySelections":
        selections = [
            s for s in (doc.get("selections") or []) if isinstance(s, dict) and s.get("subject")
        ]
        return cls(
            day=doc["day"],
            selections=selections,
            submitted=bool(doc.get("submitted")),
        )

    def attended_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for selection in self.selections:
            counts[selection.subject] = counts.get(selection.subject, 0) + 1
        return counts


class SubjectAttendance(BaseModel):
    subject: str
    scheduled: int = 0
    missed: int = 0
    attended: int = 0
    percentage: int = 0


class AttendanceReport(BaseModel):
    """Per-subject attendance within [start, end] plus aggregate figures."""

    start: date
    end: date
    rows: list[SubjectAttendance] = Field(default_factory=list)

    @property
    def total_scheduled(self) -> int:
        return sum(r.scheduled for r in self.rows)

    @property
    def total_attended(self) -> int:
        return sum(r.attended for r in self.rows)

    @property
    def total_missed(self) -> int:
        return sum(r.missed for r in self.rows)

    @property
    def average_percentage(self) -> int:
        if not self.rows:
            return 0
        return round(sum(r.percentage for r in self.rows) / len(self.rows))
