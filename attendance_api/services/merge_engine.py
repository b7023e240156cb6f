# attendance_api/services/merge_engine.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Mapping, Optional, Tuple

from attendance_api.models.day_record import STATUS_LATE, STATUS_PRESENT
from attendance_api.models.employee import Employee
from attendance_api.services.row_normalizer import DIR_IN, DIR_OUT, DIR_UNKNOWN, RawEvent

log = logging.getLogger(__name__)

POLICY_SEQUENCE = "sequence"
POLICY_CUTOFF = "cutoff"
POLICY_IN = "in"
DIRECTION_POLICIES = (POLICY_SEQUENCE, POLICY_CUTOFF, POLICY_IN)


@dataclass
class MergedDay:
    """One employee/day reduced from its punches; first_in is None when no IN was seen."""

    employee_code: str
    work_date: date
    first_in: Optional[datetime] = None
    last_out: Optional[datetime] = None
    employee_name: Optional[str] = None
    verification_method: Optional[str] = None
    source_device_id: Optional[str] = None
    source_batch_id: Optional[str] = None
    status_hint: Optional[str] = None
    row_numbers: List[int] = field(default_factory=list)
    employee: Optional[Employee] = None

    @property
    def first_row(self) -> Optional[int]:
        return min(self.row_numbers) if self.row_numbers else None

    def to_dict(self):
        return {
            "employee_id": self.employee_code,
            "date": self.work_date.isoformat(),
            "first_in": self.first_in.isoformat() if self.first_in else None,
            "last_out": self.last_out.isoformat() if self.last_out else None,
        }


@dataclass
class MergeResult:
    records: List[MergedDay] = field(default_factory=list)
    # groups that only carried OUT punches; never persisted
    missing_in: List[MergedDay] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.missing_in)


class MergeEngine:
    """
    Group RawEvents by (employee, work date) and keep earliest IN / latest OUT.

    Unlabeled punches get a direction here, per employee/day, according to
    `direction_policy`:
      sequence -> earliest unlabeled punch is IN unless a labeled IN exists, rest OUT
      cutoff   -> hour < cutoff_hour is IN, else OUT (breaks for night shifts)
      in       -> every unlabeled punch is IN
    """

    def __init__(self, direction_policy: str = POLICY_SEQUENCE, cutoff_hour: int = 12):
        policy = (direction_policy or POLICY_SEQUENCE).strip().lower()
        if policy not in DIRECTION_POLICIES:
            raise ValueError(f"direction_policy must be one of {', '.join(DIRECTION_POLICIES)}")
        if not 0 <= int(cutoff_hour) <= 23:
            raise ValueError("cutoff_hour must be within 0..23")
        self.direction_policy = policy
        self.cutoff_hour = int(cutoff_hour)

    def merge(self, events: List[RawEvent], employees: Optional[Mapping[str, Employee]] = None) -> MergeResult:
        employees = employees or {}
        groups: Dict[Tuple[str, date], List[RawEvent]] = defaultdict(list)
        for ev in events:
            groups[(ev.employee_code, ev.work_date)].append(ev)

        if self.direction_policy == POLICY_CUTOFF and any(
            ev.direction == DIR_UNKNOWN for ev in events
        ):
            log.warning(
                "[merge] inferring punch direction from hour < %s; night-shift punches will be misread",
                self.cutoff_hour,
            )

        result = MergeResult()
        for (code, work_date) in sorted(groups):
            day = self._reduce(code, work_date, groups[(code, work_date)], employees.get(code))
            if day.first_in is None:
                result.missing_in.append(day)
            else:
                result.records.append(day)

        log.info(
            "[merge] %s events -> %s day records (%s without check-in)",
            len(events), len(result.records), len(result.missing_in),
        )
        return result

    # ---------- helpers ----------

    def _directions(self, evs: List[RawEvent]) -> List[str]:
        out = [ev.direction for ev in evs]
        if self.direction_policy == POLICY_IN:
            return [DIR_IN if d == DIR_UNKNOWN else d for d in out]
        if self.direction_policy == POLICY_CUTOFF:
            return [
                d if d != DIR_UNKNOWN else (DIR_IN if ev.timestamp.hour < self.cutoff_hour else DIR_OUT)
                for ev, d in zip(evs, out)
            ]
        # sequence: evs are time-ordered, so unlabeled punches before the first
        # labeled IN are check-ins and everything after it is a check-out
        first_in = out.index(DIR_IN) if DIR_IN in out else None
        for i, d in enumerate(out):
            if d != DIR_UNKNOWN:
                continue
            if first_in is None:
                out[i] = DIR_IN
                first_in = i
            elif i < first_in:
                out[i] = DIR_IN
            else:
                out[i] = DIR_OUT
        return out

    def _reduce(self, code: str, work_date: date, evs: List[RawEvent], emp: Optional[Employee]) -> MergedDay:
        evs = sorted(evs, key=lambda e: e.timestamp)
        directions = self._directions(evs)

        day = MergedDay(employee_code=code, work_date=work_date, employee=emp)
        first_ev = None
        for ev, d in zip(evs, directions):
            if d == DIR_IN and (day.first_in is None or ev.timestamp < day.first_in):
                day.first_in = ev.timestamp
                first_ev = ev
            elif d == DIR_OUT and (day.last_out is None or ev.timestamp > day.last_out):
                day.last_out = ev.timestamp
            if ev.row_number is not None and ev.row_number not in day.row_numbers:
                day.row_numbers.append(ev.row_number)
            if ev.status_hint == STATUS_LATE:
                day.status_hint = STATUS_LATE
            elif ev.status_hint == STATUS_PRESENT and day.status_hint is None:
                day.status_hint = STATUS_PRESENT

        src = first_ev or evs[0]
        day.verification_method = src.verification_method
        day.source_device_id = src.source_device_id
        day.source_batch_id = src.source_batch_id
        day.row_numbers.sort()

        # source row names are cosmetic; the directory wins
        row_name = next((e.employee_name for e in evs if e.employee_name), None)
        day.employee_name = (emp.name if emp is not None and emp.name else None) or row_name

        if emp is not None:
            hinted = {e.role_hint for e in evs if e.role_hint}
            if hinted and hinted != {emp.role}:
                log.warning(
                    "[merge] role %s on rows %s differs from directory role %s for %s; using directory",
                    "/".join(sorted(hinted)), day.row_numbers, emp.role, code,
                )
        return day
