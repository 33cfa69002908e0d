"""Routine parsing, schedule aggregation and attendance for the cohort portal.

Reads the senior and junior routine spreadsheets (published as CSV), turns
them into per-viewer schedules, and reconciles self-reported attendance
against them.
"""

from src.academics.attendance import AttendanceService, reconcile
from src.academics.models import (
    EventType,
    ParseOutcome,
    RoutineSettings,
    ScheduleEntry,
    ScheduleResult,
    UserProfile,
)
from src.academics.schedule import RequestGuard, ScheduleAggregator

__all__ = [
    "AttendanceService",
    "EventType",
    "ParseOutcome",
    "RequestGuard",
    "RoutineSettings",
    "ScheduleAggregator",
    "ScheduleEntry",
    "ScheduleResult",
    "UserProfile",
    "reconcile",
]
