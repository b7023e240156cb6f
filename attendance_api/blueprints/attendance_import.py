from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from flask import Blueprint, current_app, request

from attendance_api.common.errors import APIError
from attendance_api.common.http import ok, fail
from attendance_api.extensions import db
from attendance_api.services.row_sources import read_rows
from attendance_api.services.wiring import build_importer

log = logging.getLogger(__name__)

bp = Blueprint("attendance_import", __name__, url_prefix="/api/v1/attendance")


def _get_rows_from_request() -> Tuple[List[Dict[str, Any]], str]:
    """
    Returns (rows, source).

    File upload:
      - multipart/form-data, field name 'file' (.csv or .xlsx)
      - first row is header, remaining rows are data

    JSON:
      - { "rows": [ { ... }, ... ] }
    """
    ctype = request.content_type or ""
    if "multipart/form-data" in ctype:
        f = request.files.get("file")
        if not f:
            raise APIError("VALIDATION_ERROR", "multipart upload needs a 'file' field", 400)
        try:
            return read_rows(f.read(), f.filename or ""), f.filename or "upload"
        except ValueError as e:
            raise APIError("UNSUPPORTED_FILE", str(e), 415)

    data = request.get_json(silent=True) or {}
    rows = data.get("rows")
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise APIError("VALIDATION_ERROR", "body must be {\"rows\": [ {...}, ... ]}", 400)
    return rows, "json"


# ---------- POST /import ----------
@bp.post("/import")
def import_attendance():
    """
    Import attendance rows (device export or template).

    Query:
      - mode=dry    -> validate + report only, nothing is written
      - mode=commit -> persist (default)
      - batch_id    -> optional source batch id stamped on the records
    """
    mode = (request.args.get("mode") or "commit").strip().lower()
    if mode not in ("dry", "commit"):
        return fail("mode must be 'dry' or 'commit'", 422, code="VALIDATION_ERROR")

    rows, source = _get_rows_from_request()
    if not rows:
        return fail("No rows found", 400, code="EMPTY_BATCH")

    # JSON rows are numbered from 1, file rows by their line (header is line 1)
    offset = 1 if source == "json" else 2
    report = build_importer(current_app, db.session).run(
        rows,
        dry_run=(mode == "dry"),
        source=source,
        source_batch_id=request.args.get("batch_id") or None,
        row_offset=offset,
    )

    if report.error:
        return fail(report.error["message"], 422, code=report.error["code"], detail=report)

    log.info("[import] %s via HTTP: %s imported, %s rejected", source, report.imported, report.rejected)
    return ok(report)
