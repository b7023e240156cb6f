# attendance_api/services/duplicate_guard.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from attendance_api.models.day_record import DayRecord
from attendance_api.services.repositories import DayRecordRepository


class DuplicateGuard:
    """
    A merged day is a duplicate iff an active DayRecord exists with the same
    (employee, work date, first_in). The same triple is a partial unique index
    on day_records, so a concurrent run that slips past this check fails on
    insert instead of double-writing.

    A corrected first_in is not a duplicate under this key; the importer's
    conflict policy decides what happens to the older record.
    """

    def __init__(self, repo: DayRecordRepository):
        self.repo = repo

    def existing(self, employee_id: int, work_date: date, first_in: datetime) -> Optional[DayRecord]:
        return self.repo.find_active_by_first_in(employee_id, work_date, first_in)

    def is_duplicate(self, employee_id: int, work_date: date, first_in: datetime) -> bool:
        return self.existing(employee_id, work_date, first_in) is not None
