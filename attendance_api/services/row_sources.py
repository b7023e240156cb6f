# attendance_api/services/row_sources.py
from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Optional, Sequence

import openpyxl


def _as_record(headers: Sequence[Optional[str]], row: Sequence[Any]) -> Dict[str, Any]:
    # blank lines stay in as all-None records so list position == sheet line - 2
    rec: Dict[str, Any] = {h: None for h in headers if h}
    for j, val in enumerate(row):
        key = headers[j] if j < len(headers) else None
        if key:
            rec[key] = val
    return rec


def _csv_rows(data: bytes) -> List[Dict[str, Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = data.decode("latin-1")
    reader = csv.reader(io.StringIO(text))
    headers = [h.strip() or None for h in next(reader, [])]
    rows = [_as_record(headers, r) for r in reader]
    # trailing newlines are not data lines
    while rows and all(v in (None, "") for v in rows[-1].values()):
        rows.pop()
    return rows


def _xlsx_rows(data: bytes) -> List[Dict[str, Any]]:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        it = ws.iter_rows(values_only=True)
        first = next(it, None) or ()
        headers = [str(h).strip() if h is not None else None for h in first]
        rows = [_as_record(headers, r) for r in it]
        while rows and all(v is None for v in rows[-1].values()):
            rows.pop()
        return rows
    finally:
        wb.close()


def read_rows(data, filename: str) -> List[Dict[str, Any]]:
    """
    Rows (header -> cell) from an uploaded CSV or XLSX. Only the first sheet
    of a workbook is read. Blank lines inside the data are kept as empty
    records, so rows[i] is sheet line i + 2; the importer counts them as skipped.
    """
    if hasattr(data, "read"):
        data = data.read()
    if isinstance(data, str):
        data = data.encode("utf-8")
    name = (filename or "").lower()
    if name.endswith(".csv"):
        return _csv_rows(data)
    if name.endswith(".xlsx") or name.endswith(".xlsm"):
        return _xlsx_rows(data)
    raise ValueError(f"unsupported file type: {filename!r} (upload .csv or .xlsx)")
