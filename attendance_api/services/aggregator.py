# attendance_api/services/aggregator.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from attendance_api.models.day_record import STATUSES, STATUS_LATE
from attendance_api.models.employee import Employee
from attendance_api.services.calendar_service import CalendarService
from attendance_api.services.repositories import (
    DayRecordRepository,
    EmployeeDirectory,
    EmployeeNotFound,
)


def attendance_rate(present_days: int, working_days: int) -> int:
    """Whole-number percentage, half rounded up. Not clamped: >100 flags bad data."""
    if working_days <= 0:
        return 0
    pct = Decimal(present_days) * 100 / Decimal(working_days)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class PeriodSummary:
    employee_id: str
    employee_name: Optional[str]
    role: str
    period_start: date
    period_end: date
    working_days: int
    present_days: int
    late_days: int
    attendance_rate: int
    last_check_in: Optional[datetime] = None
    last_check_out: Optional[datetime] = None

    def to_dict(self):
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "role": self.role,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "working_days": self.working_days,
            "present_days": self.present_days,
            "late_days": self.late_days,
            "attendance_rate": self.attendance_rate,
            "last_check_in": self.last_check_in.isoformat() if self.last_check_in else None,
            "last_check_out": self.last_check_out.isoformat() if self.last_check_out else None,
        }


class AttendanceAggregator:
    """
    Period summaries computed on demand from active DayRecords and the
    working-day calendar. Read-only: no locks, no writes.
    """

    def __init__(self, day_records: DayRecordRepository, employees: EmployeeDirectory, calendar: CalendarService):
        self.day_records = day_records
        self.employees = employees
        self.calendar = calendar

    def summarize(self, employee_id: str, start: date, end: date) -> PeriodSummary:
        if end < start:
            raise ValueError("period end is before period start")
        emp = self.employees.get(employee_id)
        if emp is None:
            raise EmployeeNotFound(f"employee {employee_id} not found")
        return self._summarize(emp, start, end, self.calendar.working_days(start, end))

    def summarize_all(self, start: date, end: date, role: Optional[str] = None) -> List[PeriodSummary]:
        if end < start:
            raise ValueError("period end is before period start")
        working = self.calendar.working_days(start, end)
        return [self._summarize(emp, start, end, working) for emp in self.employees.active(role)]

    def _summarize(self, emp: Employee, start: date, end: date, working_days: int) -> PeriodSummary:
        records = self.day_records.active_day_records(emp.id, start, end)

        present = sum(1 for r in records if r.status in STATUSES)
        if emp.is_flexible:
            late = 0
        else:
            late = sum(1 for r in records if r.status == STATUS_LATE)

        last_in = max((r.first_in for r in records if r.first_in), default=None)
        last_out = max((r.last_out for r in records if r.last_out), default=None)

        return PeriodSummary(
            employee_id=emp.code,
            employee_name=emp.name,
            role=emp.role,
            period_start=start,
            period_end=end,
            working_days=working_days,
            present_days=present,
            late_days=late,
            attendance_rate=attendance_rate(present, working_days),
            last_check_in=last_in,
            last_check_out=last_out,
        )
