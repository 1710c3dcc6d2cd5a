"""Shared helpers for turning spreadsheet cells into typed values."""
from __future__ import annotations

import csv
import hashlib
import re
from datetime import date, datetime
from io import StringIO
from typing import Iterable, Sequence

import pandas as pd

DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d", "%m/%d/%Y")

_TIME_RE = re.compile(r"^(\d{1,2})[:.](\d{2})(?::\d{2})?$")


def grid_hash(grid: Iterable[Sequence[str]]) -> str:
    hasher = hashlib.sha256()
    for row in grid:
        hasher.update("\x1f".join(row).encode("utf-8"))
        hasher.update(b"\x1e")
    return hasher.hexdigest()


def clean_cell(value: object) -> str:
    if value is None:
        return ""
    s = str(value).replace("\xa0", " ").strip()
    if s.upper() == "NAN":
        return ""
    return s


def cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return clean_cell(row[index])


def parse_date(value: str, formats: Sequence[str] = DATE_FORMATS) -> date | None:
    """Try each format in order; the first that parses wins."""
    text = clean_cell(value)
    if not text:
        return None
    candidates = [text]
    # Excel date cells read as text come out as "2025-06-23 00:00:00".
    if " " in text:
        candidates.append(text.split(" ", 1)[0])
    for candidate in candidates:
        for fmt in formats:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
    return None


def normalize_time(value: str) -> str | None:
    """Return zero-padded HH:MM, or None when the text is not a time of day."""
    match = _TIME_RE.match(clean_cell(value))
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return f"{hours:02d}:{minutes:02d}"


def parse_ordinal(value: str) -> int | None:
    text = clean_cell(value)
    if re.fullmatch(r"\d+(?:\.0+)?", text) is None:
        return None
    number = int(float(text))
    return number if number > 0 else None


def grid_from_dataframe(df: pd.DataFrame) -> list[list[str]]:
    """Flatten a header-less DataFrame into rows of cleaned text cells."""
    work = df.astype(object).where(pd.notna(df), "")
    return [[clean_cell(value) for value in row] for row in work.itertuples(index=False, name=None)]


def csv_text_to_grid(text: str) -> list[list[str]]:
    """Read CSV text whose lines may hold different numbers of fields.

    Each returned row keeps the width of its own line; blank lines become empty rows.
    """
    if not text.strip():
        return []
    widths = [len(fields) for fields in csv.reader(StringIO(text))]
    df = pd.read_csv(
        StringIO(text),
        header=None,
        names=list(range(max(widths))),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
    )
    # pandas pads every line to the widest one.
    return [row[:width] for row, width in zip(grid_from_dataframe(df), widths)]
