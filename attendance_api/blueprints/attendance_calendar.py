# attendance_api/blueprints/attendance_calendar.py
from __future__ import annotations

from flask import Blueprint, current_app

from attendance_api.common.http import ok
from attendance_api.common.listing import date_arg, period_args
from attendance_api.extensions import db
from attendance_api.services.wiring import build_calendar

bp = Blueprint("attendance_calendar", __name__, url_prefix="/api/v1/attendance/calendar")


# GET /calendar/working-days?from=&to=
@bp.get("/working-days")
def working_days():
    start, end = period_args()
    cal = build_calendar(current_app, db.session, persist_on_miss=False)
    holidays = sorted(cal.holidays_in_range(start, end), key=lambda h: h.date)
    return ok({
        "from": start.isoformat(),
        "to": end.isoformat(),
        "working_days": cal.working_days(start, end),
        "holidays": [h.to_dict() for h in holidays],
    })


# GET /calendar/is-working-day?date=YYYY-MM-DD
@bp.get("/is-working-day")
def is_working_day():
    d = date_arg("date")
    cal = build_calendar(current_app, db.session, persist_on_miss=False)
    hol = cal.holidays_for_year(d.year).get(d)
    return ok({
        "date": d.isoformat(),
        "is_working_day": cal.is_working_day(d),
        "holiday": hol.to_dict() if hol else None,
    })
