"""Free-text routine parsing: dates, time labels, subjects, cells and grids."""

from src.academics.parsers.grid import parse_junior_grid, parse_senior_grid
from src.academics.parsers.subjects import canonicalize, classify_type, subject_matches_picked

__all__ = [
    "canonicalize",
    "classify_type",
    "parse_junior_grid",
    "parse_senior_grid",
    "subject_matches_picked",
]
