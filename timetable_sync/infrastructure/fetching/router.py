"""Chooses the fetcher for a configured source."""
from __future__ import annotations

import logging

from timetable_sync.domain.repositories import Grid, GridFetcher
from timetable_sync.infrastructure.fetching.gsheet import is_sheet_url

logger = logging.getLogger(__name__)


class SourceRouter:
    """Google Sheets links go to ``sheets``; anything else is treated as a local export path."""

    def __init__(self, sheets: GridFetcher, files: GridFetcher) -> None:
        self._sheets = sheets
        self._files = files

    def fetch_grid(self, source_url: str) -> Grid:
        if is_sheet_url(source_url):
            return self._sheets.fetch_grid(source_url)
        logger.debug("Reading %s as a local export", source_url)
        return self._files.fetch_grid(source_url)
