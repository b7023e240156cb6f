from datetime import date

from flask import request

from attendance_api.common.errors import APIError


def get_page_limit(default_limit=50, max_limit=500):
    try:
        page  = max(int(request.args.get("page", 1)), 1)
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except ValueError:
        page, limit = 1, default_limit
    return page, limit


def date_arg(*names, required=True):
    """First of `names` present in the query string, as a date (YYYY-MM-DD)."""
    raw = None
    for n in names:
        raw = (request.args.get(n) or "").strip()
        if raw:
            break
    if not raw:
        if required:
            raise APIError("VALIDATION_ERROR", f"{names[0]} is required (YYYY-MM-DD)", 422)
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise APIError("VALIDATION_ERROR", f"{names[0]} must be YYYY-MM-DD", 422)


def period_args():
    start = date_arg("from", "start")
    end = date_arg("to", "end")
    if end < start:
        raise APIError("VALIDATION_ERROR", "'to' must be on or after 'from'", 422)
    return start, end
