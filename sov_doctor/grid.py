"""
grid.py — turns an uploaded workbook into per-sheet grids of raw cell values.

Supports: .xlsx .xlsm (openpyxl), .xls .ods (pandas), .csv .tsv .txt (one sheet)

Cells keep their native types: str, int, float, bool, datetime/date/time, or
None for empty. Nothing here interprets the sheet; that is the analyzer's job.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

OPENXML_FORMATS = {".xlsx", ".xlsm"}
PANDAS_FORMATS = {".xls", ".ods"}
TEXT_FORMATS = {".csv", ".tsv", ".txt"}
ALL_FORMATS = OPENXML_FORMATS | PANDAS_FORMATS | TEXT_FORMATS


class WorkbookError(ValueError):
    """The upload cannot yield any records; fatal to the run."""


@dataclass
class SheetGrid:
    name: str
    rows: list[list[Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass
class Workbook:
    source: str
    sheets: list[SheetGrid]

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def sheet(self, name: str) -> SheetGrid:
        for grid in self.sheets:
            if grid.name == name:
                return grid
        raise KeyError(name)


# ══════════════════════════════════════════════════════════════════════════════
# CELL HELPERS
# ══════════════════════════════════════════════════════════════════════════════

def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def row_is_blank(row: list[Any]) -> bool:
    return all(is_blank(value) for value in row)


def _clean_cell(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str):
        return value.replace("\x00", "")
    return value


def _trim_trailing_blank_rows(rows: list[list[Any]]) -> list[list[Any]]:
    end = len(rows)
    while end and row_is_blank(rows[end - 1]):
        end -= 1
    return rows[:end]


def _trim_row(row: list[Any]) -> list[Any]:
    end = len(row)
    while end and row[end - 1] is None:
        end -= 1
    return row[:end]


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT READERS
# ══════════════════════════════════════════════════════════════════════════════

def _read_openxml(handle, source: str) -> list[SheetGrid]:
    from openpyxl import load_workbook as open_workbook

    try:
        wb = open_workbook(handle, read_only=True, data_only=True)
    except Exception as exc:
        raise WorkbookError(f"Could not read workbook {source}: {exc}") from exc

    sheets: list[SheetGrid] = []
    try:
        for ws in wb.worksheets:
            rows = [_trim_row([_clean_cell(value) for value in row]) for row in ws.iter_rows(values_only=True)]
            sheets.append(SheetGrid(ws.title, _trim_trailing_blank_rows(rows)))
    finally:
        wb.close()
    return sheets


def _read_with_pandas(handle, suffix: str, source: str) -> list[SheetGrid]:
    import pandas as pd

    engine = None
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd — run: pip install xlrd")
    else:
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy — run: pip install odfpy")
        engine = "odf"

    try:
        frames = pd.read_excel(handle, sheet_name=None, header=None, engine=engine)
    except Exception as exc:
        raise WorkbookError(f"Could not read workbook {source}: {exc}") from exc

    sheets: list[SheetGrid] = []
    for name, frame in frames.items():
        rows = [
            _trim_row([_clean_cell(value) for value in record])
            for record in frame.astype(object).itertuples(index=False, name=None)
        ]
        sheets.append(SheetGrid(str(name), _trim_trailing_blank_rows(rows)))
    return sheets


def _detect_encoding(raw: bytes) -> str:
    import chardet

    result = chardet.detect(raw)
    detected = result.get("encoding") or "utf-8"
    logger.debug("Detected encoding %s (confidence %.2f)", detected, result.get("confidence") or 0.0)
    return detected


def _decode_text(raw: bytes, preferred_encoding: str) -> str:
    """Decode line by line so one mis-encoded line does not sink the file."""
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", "").lstrip("\ufeff"))
    return "\n".join(decoded_lines)


def _detect_delimiter(text: str, suffix: str) -> str:
    if suffix == ".tsv":
        return "\t"
    sample = "\n".join([line for line in text.splitlines() if line.strip()][:25])
    if not sample:
        return ","
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        return ","


def _coerce_text_cell(value: str) -> Any:
    text = value.strip()
    if not text:
        return None
    return text


def _read_delimited(raw: bytes, suffix: str, sheet_name: str) -> list[SheetGrid]:
    text = _decode_text(raw, _detect_encoding(raw))
    delimiter = _detect_delimiter(text, suffix)
    rows = [
        _trim_row([_coerce_text_cell(cell) for cell in row])
        for row in csv.reader(io.StringIO(text), delimiter=delimiter)
    ]
    return [SheetGrid(sheet_name, _trim_trailing_blank_rows(rows))]


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_workbook_bytes(data: bytes, filename: str) -> Workbook:
    """Parse uploaded workbook bytes; `filename` only selects the format."""
    suffix = Path(filename).suffix.lower()
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise WorkbookError(f"Unsupported file type '{suffix or '[missing extension]'}'. Supported: {supported}")
    if not data:
        raise WorkbookError(f"{filename} is empty")

    if suffix in OPENXML_FORMATS:
        sheets = _read_openxml(io.BytesIO(data), filename)
    elif suffix in PANDAS_FORMATS:
        sheets = _read_with_pandas(io.BytesIO(data), suffix, filename)
    else:
        sheets = _read_delimited(data, suffix, Path(filename).stem or "Sheet1")

    logger.info("Loaded %s: %d sheet(s)", filename, len(sheets))
    return Workbook(source=filename, sheets=sheets)


def load_workbook(path: "str | Path") -> Workbook:
    """
    Load a workbook from disk.

    Raises:
        FileNotFoundError  if the file does not exist.
        WorkbookError      if the format is unsupported or unreadable.
        ImportError        if an optional reader (xlrd, odfpy) is missing.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    workbook = load_workbook_bytes(path.read_bytes(), path.name)
    workbook.source = str(path)
    return workbook
