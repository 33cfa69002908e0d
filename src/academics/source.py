"""Routine source: spreadsheet URL handling, CSV download and row splitting.

Routines are published Google Sheets read without credentials. A share link
is rewritten to its CSV export form; any other URL is fetched as given.
Fetching fails soft: every failure is logged and reported as None so the
schedule degrades to empty instead of erroring.
"""

import csv
import io
import re
from pathlib import Path

import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.academics.config import AcademicsConfig, get_config
from src.academics.errors import RoutineFetchError, TransientError
from src.academics.logging import get_logger

log = get_logger(__name__)

_SHEETS_ID_RE = re.compile(r"https://docs\.google\.com/spreadsheets/d/([^/?#]+)", re.I)
_GID_RE = re.compile(r"[?&#]gid=([0-9]+)", re.I)


def to_csv_export_url(url: str) -> str:
    """Rewrite a Google Sheets link to its CSV export URL, keeping the tab (gid).

    Non-Sheets URLs (including ones already pointing at a CSV) are returned unchanged.
    """
    url = (url or "").strip()
    m = _SHEETS_ID_RE.match(url)
    if not m:
        return url
    gid = _GID_RE.search(url)
    suffix = f"&gid={gid.group(1)}" if gid else ""
    return f"https://docs.google.com/spreadsheets/d/{m.group(1)}/export?format=csv{suffix}"


def split_rows(text: str) -> list[list[str]]:
    """Split CSV text into rows of cell text.

    Quoted cells keep their commas and line breaks ("ERP (E,F)", multi-line
    notes) instead of spilling into neighbouring columns. Bare carriage-return line
    endings are read as newlines.

    Raises:
        csv.Error: If the text is not readable as CSV (e.g. an oversized cell).
    """
    if not text:
        return []
    return list(csv.reader(io.StringIO(text, newline=None)))


class RoutineFetcher:
    """Downloads routine CSV text.

    Retries only TransientError (timeouts, connection resets, 5xx), and only
    as many times as config.fetch_attempts allows; the default is a single
    attempt.
    """

    def __init__(
        self,
        config: AcademicsConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or get_config()
        self.session = session

    def _get(self, url: str) -> str | None:
        getter = self.session.get if self.session is not None else requests.get
        try:
            resp = getter(url, timeout=self.config.fetch_timeout_seconds, allow_redirects=True)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise RoutineFetchError(f"Routine download failed: {e}") from e

        if resp.status_code >= 500:
            raise RoutineFetchError(f"Routine host returned {resp.status_code}")
        if resp.status_code != 200:
            log.warning("routine_fetch_rejected", url=url, status=resp.status_code)
            return None
        return resp.text or None

    def fetch_csv(self, url: str) -> str | None:
        """Fetch CSV text for a routine URL.

        Args:
            url: Sheets share link, CSV export URL, or any CSV URL.

        Returns:
            The CSV text, or None on any failure or an empty body.
        """
        if not url:
            return None
        csv_url = to_csv_export_url(url)

        retrying = Retrying(
            stop=stop_after_attempt(self.config.fetch_attempts),
            wait=wait_fixed(self.config.fetch_retry_wait_seconds),
            retry=retry_if_exception_type(TransientError),
        )
        try:
            text = retrying(self._get, csv_url)
        except RetryError as e:
            log.warning(
                "routine_fetch_failed",
                url=csv_url,
                attempts=self.config.fetch_attempts,
                error=str(e.last_attempt.exception()),
            )
            return None
        except requests.RequestException as e:
            log.warning("routine_fetch_failed", url=csv_url, error=str(e), type=type(e).__name__)
            return None

        if not text:
            log.info("routine_fetch_empty", url=csv_url)
            return None
        log.info("routine_fetched", url=csv_url, bytes=len(text))
        return text


def read_local_csv(path: str | Path) -> str | None:
    """Read a routine CSV from disk (file:// URLs accepted). None if unreadable."""
    raw = str(path)
    if raw.startswith("file://"):
        raw = raw[len("file://") :]
    try:
        return Path(raw).read_text(encoding="utf-8-sig") or None
    except OSError as e:
        log.warning("routine_read_failed", path=raw, error=str(e))
        return None
