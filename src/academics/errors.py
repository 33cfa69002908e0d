"""Error hierarchy for routine fetching and profile handling.

Parsing problems (stray rows, unknown cells, a missing header row) are not
errors: they are absorbed where they are detected and reported through
ParseOutcome. Exceptions are reserved for conditions the caller must act on.

Example usage with tenacity:
    for attempt in Retrying(retry=retry_if_exception_type(TransientError), ...):
        with attempt:
            ...
"""


class AcademicsError(Exception):
    """Base exception for all academics errors."""

    pass


class TransientError(AcademicsError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, 5xx responses from the spreadsheet host.
    """

    pass


class RoutineFetchError(TransientError):
    """The routine CSV could not be downloaded."""

    pass


class PermanentError(AcademicsError):
    """Failure that won't succeed on retry."""

    pass


class InvalidProfileError(PermanentError):
    """The viewer profile is malformed (unknown cohort, section outside the cohort's set).

    The only failure the schedule aggregator lets escape to its caller.
    """

    pass
