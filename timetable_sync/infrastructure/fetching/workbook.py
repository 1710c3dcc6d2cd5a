"""Local spreadsheet exports (.xlsx, .xls, .csv) read into raw grids."""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path

import pandas as pd

from timetable_sync.domain.errors import FetchError
from timetable_sync.domain.repositories import Grid
from timetable_sync.infrastructure.parsing.utils import csv_text_to_grid, grid_from_dataframe

logger = logging.getLogger(__name__)


def _engine_for(path: Path) -> str:
    return "xlrd" if path.suffix.lower() == ".xls" else "openpyxl"


def _list_sheets(source: BytesIO, engine: str) -> list[str]:
    xls = pd.ExcelFile(source, engine=engine)
    return xls.sheet_names


def _pick_sheet(source: BytesIO, preferred: str | None, engine: str) -> str:
    sheets = _list_sheets(source, engine)
    if not sheets:
        raise FetchError("workbook has no sheets")
    if not preferred:
        return sheets[0]
    if preferred in sheets:
        return preferred
    lower_map = {name.lower(): name for name in sheets}
    if preferred.lower() in lower_map:
        return lower_map[preferred.lower()]
    for name in sheets:
        if preferred.lower() in name.lower():
            return name
    return sheets[0]


class WorkbookGridFetcher:
    def __init__(self, preferred_sheet: str | None = None) -> None:
        self._preferred_sheet = preferred_sheet

    def fetch_grid(self, source_url: str) -> Grid:
        path = Path(source_url.removeprefix("file://"))
        if not path.is_file():
            raise FetchError(f"no such export: {path}")
        try:
            if path.suffix.lower() == ".csv":
                return csv_text_to_grid(path.read_text(encoding="utf-8-sig"))
            engine = _engine_for(path)
            raw = BytesIO(path.read_bytes())
            sheet = _pick_sheet(raw, self._preferred_sheet, engine)
            logger.info("Reading sheet %r from %s", sheet, path)
            df = pd.read_excel(raw, sheet_name=sheet, engine=engine, dtype=str, header=None)
        except (OSError, ValueError) as exc:
            raise FetchError(f"cannot read {path}: {exc}") from exc
        return grid_from_dataframe(df)
