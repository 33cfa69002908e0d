"""Subject canonicalization, event-type classification and picked-subject matching.

A routine cell names a subject in many ways: "ERP (AG)", "ERP AG",
"PJM 3", "PJM LCR 01 1", "OMCR Guest Session". canonicalize() folds these
to the subject code ("ERP", "PJM", "OMCR") while keeping Roman-numeral
course suffixes ("MARKETING II") and assessment words ("IFM QUIZ") intact.
"""

import re
from collections.abc import Iterable

from src.academics.models import EventType

_ROMAN_RE = re.compile(r"^[IVXLCDM]+$", re.I)
_PAREN_INITIALS_RE = re.compile(r"\s*\(([A-Z]{2,4})\)\s*$")
_TRAILING_INITIALS_RE = re.compile(r"\s+([A-Z]{2,4})$")
_BATCH_RE = re.compile(r"^PJM\s+\d+$", re.I)
ROOM_CODE_RE = re.compile(r"\b(?:LCR|MCR)\s*\d*\b", re.I)
_GUEST_RE = re.compile(r"\s*[–—-]?\s*\bguest\s*session\b\s*[–—-]?\s*", re.I)

GUEST_SESSION = "Guest Session"

# Checked before exam keywords: "Quiz submission" is a deadline, not a sitting
_SUBMISSION_RE = re.compile(
    r"\b(?:submission|submit|deadline|due\b|deliverable|assignment)", re.I
)
_EXAM_RE = re.compile(
    r"\b(?:exam|mid[-\s]*term|end[-\s]*sem|final|quiz|test|viva|assessment|presentation|event)",
    re.I,
)

_EXAM_PUNCT_RE = re.compile(r"[()\[\].,:;–—-]")
_WS_RE = re.compile(r"\s+")


def classify_type(text: str) -> EventType:
    """Label subject text as a submission, an exam/event, or a regular class."""
    t = (text or "").strip()
    if _SUBMISSION_RE.search(t):
        return EventType.SUB
    if _EXAM_RE.search(t):
        return EventType.EXAM
    return EventType.CLASS


def _is_protected(token: str) -> bool:
    """Roman numerals and assessment words are part of the subject, never initials."""
    return bool(_ROMAN_RE.match(token)) or classify_type(token) is not EventType.CLASS


def normalize_guest_subject(token: str) -> str:
    """Fold "<SUBJ> Guest Session" to SUBJ, or to "Guest Session" when nothing precedes it."""
    if not token or not _GUEST_RE.search(token):
        return token
    base = _GUEST_RE.sub(" ", token).strip(" –—-")
    return _WS_RE.sub(" ", base) or GUEST_SESSION


def strip_room_code(token: str) -> str:
    """Truncate at a room code (LCR/MCR) that follows the subject."""
    m = ROOM_CODE_RE.search(token)
    if m and m.start() > 0:
        base = token[: m.start()].strip(" -–—(")
        if len(base) >= 2:
            return base
    return token


def canonicalize(token: str, *, strip_initials: bool = True) -> str:
    """Canonical subject name for a cell token.

    Rules, in order:
      1. drop a trailing "(XX)" or bare " XX" instructor-initials token
         (2-4 capitals), unless it is a Roman numeral or assessment word;
      2. "PJM <n>" batch numbering collapses to "PJM";
      3. truncate at a room code appearing after the subject;
      4. fold "Guest Session" phrasing.

    Args:
        token: Subject-like text already separated from section tags.
        strip_initials: False for exam/submission text, where the trailing
            token is usually the subject code itself ("MID TERM IFM").
    """
    t = _WS_RE.sub(" ", (token or "").strip())
    if not t:
        return t

    if strip_initials:
        for pattern in (_PAREN_INITIALS_RE, _TRAILING_INITIALS_RE):
            m = pattern.search(t)
            if m and not _is_protected(m.group(1)):
                base = t[: m.start()].strip()
                if base:
                    t = base

    if _BATCH_RE.match(t):
        t = "PJM"

    t = strip_room_code(t)
    return normalize_guest_subject(t).strip()


def normalize_exam_string(text: str) -> str:
    """Uppercase, punctuation-free, single-spaced form used for exam matching."""
    return _WS_RE.sub(" ", _EXAM_PUNCT_RE.sub(" ", text or "")).strip().upper()


def subject_matches_picked(
    subject: str, type_: EventType | str | None, picked: Iterable[str]
) -> bool:
    """Whether an entry belongs to a viewer who picked the given subjects.

    Classes need an exact or canonical-form match. Exams and submissions
    match when a picked subject appears as a whole word anywhere in the
    text, which covers "MID TERM IFM", "IFM QUIZ 1" and "QUIZ 1 IFM".
    An empty pick list matches everything.
    """
    picked = [p for p in picked if p and p.strip()]
    if not picked:
        return True

    if type_ is None or EventType(type_) is EventType.CLASS:
        exact = subject.strip()
        canon = canonicalize(exact).upper()
        for p in picked:
            if p.strip() == exact:
                return True
            p_canon = canonicalize(p).upper()
            if p_canon and p_canon == canon:
                return True
        return False

    text = normalize_exam_string(subject)
    for p in picked:
        needle = normalize_exam_string(canonicalize(p))
        if not needle:
            continue
        if re.search(rf"(?<![A-Z0-9]){re.escape(needle)}(?![A-Z0-9])", text):
            return True
    return False
