from __future__ import annotations

import logging

from flask import Blueprint, request

from attendance_api.common.errors import APIError
from attendance_api.common.http import ok
from attendance_api.common.listing import get_page_limit, period_args
from attendance_api.extensions import db
from attendance_api.services.repositories import (
    AlreadyDeleted,
    DayRecordRepository,
    EmployeeDirectory,
    RecordNotFound,
)

log = logging.getLogger(__name__)

bp = Blueprint("attendance_records", __name__, url_prefix="/api/v1/attendance/day-records")


# GET /day-records?employee_id=E001&from=&to=&page=&limit=
@bp.get("")
def list_day_records():
    code = (request.args.get("employee_id") or "").strip()
    if not code:
        raise APIError("VALIDATION_ERROR", "employee_id is required", 422)
    start, end = period_args()
    emp = EmployeeDirectory(db.session).get(code)
    if emp is None:
        raise APIError("NOT_FOUND", f"employee {code} not found", 404)

    rows = DayRecordRepository(db.session).active_day_records(emp.id, start, end)
    page, limit = get_page_limit()
    chunk = rows[(page - 1) * limit: page * limit]
    return ok(chunk, page=page, limit=limit, total=len(rows))


# DELETE /day-records/<id>  (tombstone, never a physical delete)
@bp.delete("/<int:record_id>")
def delete_day_record(record_id: int):
    try:
        rec = DayRecordRepository(db.session).soft_delete(record_id)
    except RecordNotFound as e:
        raise APIError("NOT_FOUND", str(e), 404)
    except AlreadyDeleted as e:
        raise APIError("ALREADY_DELETED", str(e), 409)
    log.info("[day-records] %s tombstoned (%s %s)", rec.id, rec.employee_code, rec.work_date)
    return ok(rec)
