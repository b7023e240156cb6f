# attendance_api/services/repositories.py
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from attendance_api.models.day_record import DayRecord
from attendance_api.models.employee import Employee


class RecordNotFound(Exception):
    pass


class AlreadyDeleted(Exception):
    pass


class EmployeeNotFound(Exception):
    pass


class EmployeeDirectory:
    """Read-only view of the employee reference data."""

    def __init__(self, session):
        self.session = session

    def get(self, code: str) -> Optional[Employee]:
        return self.session.query(Employee).filter(Employee.code == str(code).strip()).first()

    def by_device_user(self, device_user_id: str) -> Optional[Employee]:
        return (
            self.session.query(Employee)
            .filter(Employee.device_user_id == str(device_user_id).strip())
            .first()
        )

    def load(self, codes: Iterable[str]) -> Dict[str, Employee]:
        """code -> Employee for every known code, fetched in one query."""
        wanted = {str(c).strip() for c in codes if c}
        if not wanted:
            return {}
        rows = self.session.query(Employee).filter(Employee.code.in_(wanted)).all()
        return {e.code: e for e in rows}

    def device_map(self) -> Dict[str, Employee]:
        rows = self.session.query(Employee).filter(Employee.device_user_id.isnot(None)).all()
        return {str(e.device_user_id).strip(): e for e in rows}

    def active(self, role: Optional[str] = None) -> List[Employee]:
        q = self.session.query(Employee).filter(Employee.active.is_(True))
        if role:
            q = q.filter(Employee.role == role)
        return q.order_by(Employee.code.asc()).all()


class DayRecordRepository:
    """
    Every read here filters out tombstoned rows; callers never see `deleted`.
    Writes are staged on the session; transactions belong to the caller.
    """

    def __init__(self, session):
        self.session = session

    def _active(self):
        return self.session.query(DayRecord).filter(DayRecord.deleted.is_(False))

    def active_day_records(self, employee_id: int, start: date, end: date) -> List[DayRecord]:
        return (
            self._active()
            .filter(
                DayRecord.employee_id == employee_id,
                DayRecord.work_date >= start,
                DayRecord.work_date <= end,
            )
            .order_by(DayRecord.work_date.asc())
            .all()
        )

    def find_active(self, employee_id: int, work_date: date) -> Optional[DayRecord]:
        return self._active().filter(
            DayRecord.employee_id == employee_id,
            DayRecord.work_date == work_date,
        ).first()

    def find_active_by_first_in(self, employee_id: int, work_date: date, first_in: datetime) -> Optional[DayRecord]:
        return self._active().filter(
            DayRecord.employee_id == employee_id,
            DayRecord.work_date == work_date,
            DayRecord.first_in == first_in,
        ).first()

    def get(self, record_id: int) -> Optional[DayRecord]:
        return self.session.get(DayRecord, record_id)

    def add(self, record: DayRecord) -> DayRecord:
        self.session.add(record)
        return record

    def tombstone(self, record: DayRecord) -> DayRecord:
        record.deleted = True
        record.deleted_at = datetime.utcnow()
        return record

    def soft_delete(self, record_id: int) -> DayRecord:
        rec = self.get(record_id)
        if rec is None:
            raise RecordNotFound(f"day record {record_id} not found")
        if rec.deleted:
            raise AlreadyDeleted(f"day record {record_id} is already deleted")
        self.tombstone(rec)
        self.session.commit()
        return rec
