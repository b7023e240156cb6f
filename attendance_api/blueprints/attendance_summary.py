from __future__ import annotations

from flask import Blueprint, current_app, request

from attendance_api.common.errors import APIError
from attendance_api.common.http import ok
from attendance_api.common.listing import period_args
from attendance_api.extensions import db
from attendance_api.models.employee import normalize_role
from attendance_api.services.repositories import EmployeeNotFound
from attendance_api.services.wiring import build_aggregator

bp = Blueprint("attendance_summary", __name__, url_prefix="/api/v1/attendance")


# GET /summary?employee_id=E001&from=YYYY-MM-DD&to=YYYY-MM-DD
@bp.get("/summary")
def summary_one():
    code = (request.args.get("employee_id") or "").strip()
    if not code:
        raise APIError("VALIDATION_ERROR", "employee_id is required", 422)
    start, end = period_args()
    try:
        s = build_aggregator(current_app, db.session).summarize(code, start, end)
    except EmployeeNotFound as e:
        raise APIError("NOT_FOUND", str(e), 404)
    return ok(s)


# GET /summary/all?from=&to=&role=FLEXIBLE|SHIFT
@bp.get("/summary/all")
def summary_all():
    start, end = period_args()
    role = None
    raw_role = request.args.get("role")
    if raw_role:
        role = normalize_role(raw_role)
        if role is None:
            raise APIError("VALIDATION_ERROR", "role must be FLEXIBLE or SHIFT", 422)
    items = build_aggregator(current_app, db.session).summarize_all(start, end, role)
    return ok(items, total=len(items))
