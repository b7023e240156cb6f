# attendance_api/services/device_sync.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from attendance_api.services.importer import AttendanceImporter, ImportReport
from attendance_api.services.repositories import EmployeeDirectory
from attendance_api.services.row_normalizer import RawEvent, RowNormalizer, RowRejected

log = logging.getLogger(__name__)


class LogSource(Protocol):
    """
    A biometric terminal (or anything polling one). Each record carries at
    least `device_user_id` (or `user_id`) and `timestamp`; `punch`,
    `verify_type` and `device_id` are optional.
    """

    def pull_events(self) -> Iterable[Any]:
        ...


_FIELDS = ("device_user_id", "user_id", "timestamp", "record_time", "punch", "verify_type", "status", "device_id")


def _as_dict(rec: Any) -> Dict[str, Any]:
    if isinstance(rec, dict):
        return rec
    # terminal SDKs hand back plain objects
    return {k: getattr(rec, k) for k in _FIELDS if hasattr(rec, k)}


class DeviceSync:
    """Pull punches from a LogSource and push them through the import pipeline."""

    def __init__(self, importer: AttendanceImporter, directory: Optional[EmployeeDirectory] = None,
                 device_id: Optional[str] = None):
        self.importer = importer
        self.directory = directory or importer.directory
        self.device_id = device_id

    def sync(
        self,
        source: LogSource,
        dry_run: bool = False,
        batch_id: Optional[str] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ImportReport:
        records = list(source.pull_events() or [])
        report = self.importer.new_report(dry_run, source="terminal", batch_id=batch_id)
        report.format = "TERMINAL"
        report.total_rows = len(records)

        users = self.directory.device_map()
        normalizer = RowNormalizer(
            report.batch_id, self.device_id or self.importer.settings.default_device_id
        )

        events: List[RawEvent] = []
        emp_map = {}
        for idx, raw in enumerate(records, start=1):
            rec = _as_dict(raw)
            uid = rec.get("device_user_id", rec.get("user_id"))
            uid = str(uid).strip() if uid is not None else ""
            if not uid:
                report.reject(idx, "employee id is blank")
                continue
            emp = users.get(uid)
            if emp is None:
                report.reject(idx, f"unknown device user {uid}", uid)
                continue
            if not emp.active:
                report.reject(idx, f"inactive employee {emp.code}", emp.code)
                continue
            if "verify_type" not in rec and "status" in rec:
                rec = {**rec, "verify_type": rec["status"]}
            try:
                events.extend(normalizer.normalize_terminal(rec, emp.code, idx))
            except RowRejected as e:
                report.reject(idx, e.reason, emp.code)
                continue
            emp_map[emp.code] = emp

        log.info("[device] pulled %s records, %s usable", len(records), len(events))
        return self.importer.ingest_events(events, emp_map, report, dry_run=dry_run, should_stop=should_stop)
