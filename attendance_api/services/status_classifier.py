# attendance_api/services/status_classifier.py
from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Optional

from attendance_api.models.attendance import Shift
from attendance_api.models.day_record import STATUS_LATE, STATUS_PRESENT

log = logging.getLogger(__name__)

_DAY = 86400
_HALF_DAY = 43200


def _secs(t) -> int:
    if isinstance(t, datetime):
        t = t.time()
    return t.hour * 3600 + t.minute * 60 + t.second


def late_seconds(first_in: datetime, shift: Shift) -> int:
    """
    Seconds past (start + grace); negative means early.

    The difference is folded into [-12h, +12h) so a 21:50 punch for a 22:00
    shift is early and a 00:30 punch for the same shift is late.
    """
    threshold = _secs(shift.start_time) + int(shift.grace_minutes or 0) * 60
    diff = _secs(first_in) - threshold
    return ((diff + _HALF_DAY) % _DAY) - _HALF_DAY


def classify(record, employee, shift: Optional[Shift] = None) -> str:
    """
    PRESENT or LATE for a merged day. Flexible-schedule employees are never late.
    `shift` defaults to the employee's assigned shift.
    """
    first_in = getattr(record, "first_in", None)
    if first_in is None:
        raise ValueError("cannot classify a day record without first_in")

    if employee.is_flexible:
        return STATUS_PRESENT

    shift = shift or employee.shift
    if shift is None:
        log.warning("[status] shift-bound employee %s has no shift; treating as PRESENT", employee.code)
        return STATUS_PRESENT

    return STATUS_LATE if late_seconds(first_in, shift) > 0 else STATUS_PRESENT
