"""
Record Loader
=============
Reads opportunity / commitment exports into lists of dicts keyed by header.

Supported formats:
  - .csv   UTF-8 (BOM tolerated), falling back to Windows-1252; separator is
           ';' if the header line has one, else tab, else ','
  - .xlsx  every worksheet, first row of each sheet is the header;
           percent-formatted numbers are scaled to percentages
  - .json  a list of objects, or {"results": [...]}

Other cell values are passed through untouched; the normalizers deal with stray
whitespace, native numbers and dates.
"""
from __future__ import annotations

import csv
import io
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from analytics.lib.errors import RecordLoadError
from analytics.lib.logger import setup_logger

logger = setup_logger("record_loader")

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".json")


def decode_bytes(data: bytes) -> str:
    """Decode as UTF-8, falling back to Windows-1252 for legacy CRM exports."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("Input is not UTF-8, decoding as cp1252")
        return data.decode("cp1252", errors="replace")


def detect_separator(text: str) -> str:
    first_line = text.splitlines()[0] if text else ""
    if ";" in first_line:
        return ";"
    if "\t" in first_line:
        return "\t"
    return ","


def parse_csv_text(text: str, separator: str = None) -> List[Dict[str, Any]]:
    """Parse CSV text into records; rows with fewer than two fields are skipped."""
    separator = separator or detect_separator(text)
    reader = csv.reader(io.StringIO(text), delimiter=separator)

    headers: List[str] = []
    records: List[Dict[str, Any]] = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if not headers:
            headers = [h.strip() for h in row]
            continue
        if len(row) < 2:
            continue
        records.append({
            header: (row[j].strip() if j < len(row) else "")
            for j, header in enumerate(headers)
        })
    return records


def _cell_value(cell: Any) -> Any:
    """Cell value, with percent-formatted numbers read as percentages (0.9 -> 90)."""
    value = cell.value
    number_format = getattr(cell, "number_format", None) or ""
    if "%" in number_format and isinstance(value, (int, float)) and not isinstance(value, bool):
        return round(value * 100, 6)
    return value


def _load_xlsx(path: Path) -> List[Dict[str, Any]]:
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError) as e:
        raise RecordLoadError(f"Unreadable workbook: {e}", str(path)) from e

    records: List[Dict[str, Any]] = []
    try:
        for sheet in workbook.worksheets:
            rows = (tuple(_cell_value(c) for c in row) for row in sheet.iter_rows())
            header_row = next(rows, None)
            if header_row is None:
                continue
            headers = [str(h).strip() if h is not None else "" for h in header_row]
            for row in rows:
                if all(cell is None or str(cell).strip() == "" for cell in row):
                    continue
                records.append({
                    header: row[j] if j < len(row) else None
                    for j, header in enumerate(headers)
                    if header
                })
            logger.debug("Read sheet '%s' from %s", sheet.title, path.name)
    finally:
        workbook.close()
    return records


def _load_json(path: Path) -> List[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise RecordLoadError(f"Invalid JSON: {e}", str(path)) from e

    if isinstance(data, dict):
        data = data.get("results", [])
    if not isinstance(data, list):
        raise RecordLoadError("JSON export must be a list of records", str(path))
    return [row for row in data if isinstance(row, dict)]


def load_records(path: str | Path) -> List[Dict[str, Any]]:
    """
    Load an export file into a list of record dicts.

    Raises:
        RecordLoadError: if the file is missing, unreadable, or of an
            unsupported type.
    """
    path = Path(path)
    if not path.exists():
        raise RecordLoadError(f"File not found: {path}", str(path))

    suffix = path.suffix.lower()
    if suffix == ".csv":
        records = parse_csv_text(decode_bytes(path.read_bytes()))
    elif suffix == ".xlsx":
        records = _load_xlsx(path)
    elif suffix == ".json":
        records = _load_json(path)
    else:
        raise RecordLoadError(
            f"Unsupported file type '{suffix}' (expected one of {', '.join(SUPPORTED_SUFFIXES)})",
            str(path),
        )

    logger.info("Loaded %d records from %s", len(records), path.name)
    return records
