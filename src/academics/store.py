"""Document store contract and the repositories built on it.

The portal keeps settings, profiles and attendance in an external document
store addressed by slash-separated paths:

    settings/routine                         routine URLs, terms, reminder time
    profiles/{email}                         cohort, section, picked subjects
    attendance/{uid}/baseline/T{term}        missed-before-tracking counts
    attendance/{uid}/days/{YYYY-MM-DD}       one self-reported record per day

Writes are merge-writes: fields not named in the patch are left untouched.
Subscribers receive the whole document on every change, never a delta, so
independent callbacks stay correct in whatever order they run.
"""

import copy
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any, Protocol

from src.academics.logging import get_logger
from src.academics.models import (
    AttendanceBaseline,
    AttendanceDaySelections,
    AttendanceSelection,
    RoutineSettings,
    UserProfile,
)

log = get_logger(__name__)

Snapshot = dict[str, Any] | None
Unsubscribe = Callable[[], None]

ROUTINE_SETTINGS_PATH = "settings/routine"


class DocumentStore(Protocol):
    def get(self, path: str) -> dict[str, Any] | None: ...

    def set(self, path: str, patch: dict[str, Any], merge: bool = True) -> None: ...

    def subscribe(self, path: str, callback: Callable[[Snapshot], None]) -> Unsubscribe: ...


class InMemoryDocumentStore:
    """Process-local DocumentStore (development, CLI and tests)."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._docs: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._subscribers: dict[str, list[Callable[[Snapshot], None]]] = {}

    def get(self, path: str) -> dict[str, Any] | None:
        doc = self._docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    def set(self, path: str, patch: dict[str, Any], merge: bool = True) -> None:
        if merge and path in self._docs:
            self._docs[path].update(copy.deepcopy(patch))
        else:
            self._docs[path] = copy.deepcopy(patch)
        self._notify(path)

    def subscribe(self, path: str, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        """Register callback for path; it is called at once with the current snapshot."""
        self._subscribers.setdefault(path, []).append(callback)
        callback(self.get(path))

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(path, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _notify(self, path: str) -> None:
        for callback in list(self._subscribers.get(path, [])):
            callback(self.get(path))


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class RoutineSettingsRepository:
    """Reads settings/routine."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get(self) -> RoutineSettings:
        return RoutineSettings.from_document(self.store.get(ROUTINE_SETTINGS_PATH))

    def on_change(self, callback: Callable[[RoutineSettings], None]) -> Unsubscribe:
        """Call back with the full, freshly parsed settings on every change."""
        return self.store.subscribe(
            ROUTINE_SETTINGS_PATH,
            lambda snapshot: callback(RoutineSettings.from_document(snapshot)),
        )


class ProfileRepository:
    """Reads profiles/{email}."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @staticmethod
    def path(email: str) -> str:
        return f"profiles/{email.strip().lower()}"

    def get(self, email: str) -> UserProfile | None:
        """The viewer's profile, or None when none is stored.

        Raises:
            InvalidProfileError: If a stored profile is malformed.
        """
        if not email:
            return None
        doc = self.store.get(self.path(email))
        if doc is None:
            return None
        return UserProfile.from_document(doc)


class AttendanceRepository:
    """Baselines and per-day selections under attendance/{uid}/..."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @staticmethod
    def baseline_path(uid: str, term: int) -> str:
        return f"attendance/{uid}/baseline/T{term}"

    @staticmethod
    def day_path(uid: str, day: date) -> str:
        return f"attendance/{uid}/days/{day.isoformat()}"

    def get_baseline(self, uid: str, term: int) -> AttendanceBaseline | None:
        doc = self.store.get(self.baseline_path(uid, term))
        if doc is None:
            return None
        baseline = AttendanceBaseline.from_document(doc)
        return baseline.model_copy(update={"term": baseline.term or term})

    def save_baseline(self, uid: str, baseline: AttendanceBaseline) -> None:
        patch = baseline.to_document()
        patch["updatedAt"] = _timestamp()
        self.store.set(self.baseline_path(uid, baseline.term), patch, merge=True)
        log.info(
            "attendance_baseline_saved",
            uid=uid,
            term=baseline.term,
            as_of=str(baseline.as_of),
        )

    def get_day(self, uid: str, day: date) -> AttendanceDaySelections | None:
        doc = self.store.get(self.day_path(uid, day))
        if doc is None:
            return None
        doc.setdefault("day", day.isoformat())
        return AttendanceDaySelections.from_document(doc)

    def save_day(
        self,
        uid: str,
        email: str,
        day: date,
        selections: list[AttendanceSelection],
    ) -> AttendanceDaySelections:
        """Store the day's selections (an empty list is a valid submission)."""
        record = AttendanceDaySelections(day=day, selections=selections, submitted=True)
        self.store.set(
            self.day_path(uid, day),
            {
                "uid": uid,
                "email": email.strip().lower(),
                "day": day.isoformat(),
                "selections": [s.model_dump() for s in selections],
                "submitted": True,
                "updatedAt": _timestamp(),
            },
            merge=True,
        )
        log.info("attendance_day_saved", uid=uid, day=day.isoformat(), selections=len(selections))
        return record
