"""Google Sheets CSV export client."""
from __future__ import annotations

import logging
import re

import pandas as pd
import requests

from timetable_sync.domain.errors import FetchError
from timetable_sync.domain.repositories import Grid
from timetable_sync.infrastructure.parsing.utils import csv_text_to_grid

logger = logging.getLogger(__name__)

EXPORT_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export?format=csv&gid={gid}"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"

_SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([^/?#]+)")
_GID_RE = re.compile(r"[#?&]gid=(\d+)")


def is_sheet_url(source_url: str) -> bool:
    return _SPREADSHEET_ID_RE.search(source_url) is not None


def export_url(sheet_url: str, gid: int | None = None) -> str:
    """Build the CSV export URL for a sheet link such as ``.../d/<id>/edit#gid=12``."""
    match = _SPREADSHEET_ID_RE.search(sheet_url)
    if match is None:
        raise FetchError(f"cannot extract spreadsheet id from {sheet_url!r}")
    if gid is None:
        gid_match = _GID_RE.search(sheet_url)
        gid = int(gid_match.group(1)) if gid_match else 0
    return EXPORT_URL.format(spreadsheet_id=match.group(1), gid=gid)


class GoogleSheetFetcher:
    def __init__(self, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch_grid(self, source_url: str) -> Grid:
        url = export_url(source_url)
        logger.info("Fetching sheet export %s", url)
        try:
            resp = self._session.get(url, timeout=self._timeout, headers={"User-Agent": USER_AGENT})
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"failed to fetch {url}: {exc}") from exc

        try:
            grid = csv_text_to_grid(resp.content.decode("utf-8-sig"))
        except (UnicodeDecodeError, pd.errors.ParserError) as exc:
            raise FetchError(f"sheet export {url} is not readable CSV: {exc}") from exc
        logger.info("Fetched %d rows from %s", len(grid), url)
        return grid
