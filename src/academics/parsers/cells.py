"""Cell entry extraction for senior (free text) and junior (bracketed) routine cells.

Senior cells are typed by hand and carry everything at once:
    "ERP (AG) (E&F)", "IFM sec E, MKT sec F", "PJM LCR 01 1 - Prof. Rao",
    "OMCR Guest Session common"
Junior cells follow a fixed bracket grammar:
    "Act [] [2][E] [Orientation Talk]"
    "FIN [LCR 02] [AKS] [3][F]"

Raw text never leaves this module: both extractors return CellEntry models.
Senior parts are matched against SENIOR_PART_RULES, first match wins.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from src.academics.models import CellEntry, EventType
from src.academics.parsers.subjects import canonicalize, classify_type

SECTION_LIST = r"[EFG](?:\s*[,&/]\s*[EFG])*"
_SECTION_SPLIT_RE = re.compile(r"[,&/]+")

_TITLE = r"(?:Prof|Professor|Dr|Mr|Mrs|Ms)\b\.?"
# A title only counts after whitespace or a dash, so codes like "MST" survive
_DASH_INSTRUCTOR_RE = re.compile(rf"\s*[–—-]\s*{_TITLE}[^,;)]*$", re.I)
_SPACE_INSTRUCTOR_RE = re.compile(rf"\s+{_TITLE}[^,;)]*$", re.I)
_TRAILING_ROOM_RE = re.compile(
    r"\s*(?:[（(]\s*|-\s*)?(?:LCR|MCR)\s*0*\d+\s*[）)]?\s*$", re.I
)
_NON_SECTION_PAREN_RE = re.compile(rf"\((?!\s*{SECTION_LIST}\s*\))([^()]*)\)", re.I)
_PAREN_SECTIONS_RE = re.compile(rf"\(\s*({SECTION_LIST})\s*\)", re.I)
_SECTION_WORDS_RE = re.compile(
    rf"^(?P<subject>[A-Za-z0-9\-/& .]+?)\s+(?:sec|section)\s*(?P<sections>{SECTION_LIST})\b",
    re.I,
)
_COMMON_RE = re.compile(r"^(?P<subject>[A-Za-z0-9\-/& .]+?)\s+common\b", re.I)
_BARE_SUBJECT_RE = re.compile(r"^[A-Za-z0-9\-/& .]{2,60}$")

_PART_SEPARATORS = frozenset(",;/\n")
_EMPTY_PARTS = frozenset({"-", "–", "—"})

_JUNIOR_SECTIONS = r"[A-Za-z](?:\s*[,&/]\s*[A-Za-z])*"
_JUNIOR_ACT_PREFIX_RE = re.compile(r"^Act\s*\[")
_JUNIOR_ACT_RE = re.compile(
    rf"^Act\s*\[\s*\]\s*\[(?P<session>\d+)\]\s*\[(?P<sections>{_JUNIOR_SECTIONS})\]"
    r"\s*\[(?P<event>[^\]]*)\]"
)
_JUNIOR_CLASS_RE = re.compile(
    r"^(?P<subject>[^\[\]]+?)\s*\[(?P<room>[^\]]+)\]\s*\[(?P<professor>[^\]]+)\]"
    rf"\s*\[(?P<session>\d+)\]\s*\[(?P<sections>{_JUNIOR_SECTIONS})\]"
)


def parse_sections(text: str | None) -> tuple[str, ...]:
    """Split a section tag like "E&F", "e, f", "E/F/G" into upper-case letters."""
    if not text:
        return ()
    compact = re.sub(r"\s+", "", text).upper()
    return tuple(s for s in _SECTION_SPLIT_RE.split(compact) if s)


def section_visible(tag: str | None, viewer_section: str) -> bool:
    """An untagged entry is common; a tagged one must list the viewer's section."""
    if not tag:
        return True
    return viewer_section.strip().upper() in parse_sections(tag)


@dataclass(frozen=True)
class PartMatch:
    """Subject text and section tags recognized in one part of a senior cell."""

    subject: str
    sections: tuple[str, ...] = ()


def _strip_instructor(text: str) -> str:
    text = _DASH_INSTRUCTOR_RE.sub("", text)
    return _SPACE_INSTRUCTOR_RE.sub("", text)


def _split_parts(text: str) -> list[str]:
    """Split on , ; / and newlines that sit outside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch in _PART_SEPARATORS and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def match_paren_sections(part: str) -> PartMatch | None:
    """Section tag in parentheses: "ERP AG (E&F)" -> ERP AG for E and F."""
    m = _PAREN_SECTIONS_RE.search(part)
    if not m:
        return None
    rest = f"{part[: m.start()]} {part[m.end():]}".strip()
    if not rest:
        return None
    return PartMatch(subject=rest, sections=parse_sections(m.group(1)))


def match_section_words(part: str) -> PartMatch | None:
    """Section wording: "IFM sec E", "MKT Section E&F"."""
    m = _SECTION_WORDS_RE.match(part)
    if not m:
        return None
    return PartMatch(subject=m.group("subject").strip(), sections=parse_sections(m.group("sections")))


def match_common(part: str) -> PartMatch | None:
    """Explicitly common: "OMCR common" is visible to every section."""
    m = _COMMON_RE.match(part)
    if not m:
        return None
    return PartMatch(subject=m.group("subject").strip())


def match_bare_subject(part: str) -> PartMatch | None:
    """Anything else that still looks like a subject once room and instructor tails are gone."""
    token = _TRAILING_ROOM_RE.sub("", part)
    token = re.sub(r"\s+prof(?:essor)?\..*$", "", token, flags=re.I)
    token = re.sub(r"\s+dr\..*$", "", token, flags=re.I).strip()
    if not _BARE_SUBJECT_RE.match(token):
        return None
    return PartMatch(subject=token)


SENIOR_PART_RULES: list[tuple[str, Callable[[str], PartMatch | None]]] = [
    ("paren_sections", match_paren_sections),
    ("section_words", match_section_words),
    ("common", match_common),
    ("bare_subject", match_bare_subject),
]


def _entries_from_match(match: PartMatch) -> list[CellEntry]:
    type_ = classify_type(match.subject)
    subject = canonicalize(match.subject, strip_initials=type_ is EventType.CLASS)
    if not subject or not _BARE_SUBJECT_RE.match(subject):
        return []
    if not match.sections:
        return [CellEntry(subject=subject, type=type_)]
    return [CellEntry(subject=subject, section=s, type=type_) for s in match.sections]


def extract_senior_entries(cell: str | None) -> list[CellEntry]:
    """Split one senior cell into entries, one per (subject, section).

    Unrecognizable parts contribute nothing.
    """
    if not cell or not cell.strip():
        return []

    text = _strip_instructor(cell)
    text = _TRAILING_ROOM_RE.sub("", text)
    text = _NON_SECTION_PAREN_RE.sub(lambda m: m.group(1).strip(), text)
    text = _TRAILING_ROOM_RE.sub("", text)

    out: list[CellEntry] = []
    for part in _split_parts(text):
        part = _strip_instructor(part).strip()
        if not part or part in _EMPTY_PARTS:
            continue
        for _name, rule in SENIOR_PART_RULES:
            match = rule(part)
            if match is not None:
                out.extend(_entries_from_match(match))
                break
    return out


def extract_junior_entries(cell: str | None) -> list[CellEntry]:
    """Parse a junior bracket cell; anything off-grammar yields no entries.

    "Act [] [<session>][<section>] [<event>]" is always an exam/event;
    "<subject> [<room>] [<professor>] [<session>][<section>]" is typed by
    its subject text.
    """
    text = (cell or "").strip()
    if not text:
        return []

    if _JUNIOR_ACT_PREFIX_RE.match(text):
        m = _JUNIOR_ACT_RE.match(text)
        if not m or not m.group("event").strip():
            return []
        return [
            CellEntry(subject=m.group("event").strip(), section=s, type=EventType.EXAM)
            for s in parse_sections(m.group("sections"))
        ]

    m = _JUNIOR_CLASS_RE.match(text)
    if not m:
        return []
    subject = m.group("subject").strip()
    return [
        CellEntry(
            subject=subject,
            section=s,
            room=m.group("room").strip(),
            type=classify_type(subject),
        )
        for s in parse_sections(m.group("sections"))
    ]
