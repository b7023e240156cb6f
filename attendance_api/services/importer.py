# attendance_api/services/importer.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from attendance_api.models.day_record import DayRecord, STATUS_LATE, STATUS_PRESENT
from attendance_api.models.employee import Employee
from attendance_api.services.duplicate_guard import DuplicateGuard
from attendance_api.services.format_detector import DetectedFormat, detect
from attendance_api.services.merge_engine import MergeEngine, MergedDay
from attendance_api.services.repositories import DayRecordRepository, EmployeeDirectory
from attendance_api.services.row_normalizer import RawEvent, RowNormalizer, RowRejected
from attendance_api.services.status_classifier import classify

log = logging.getLogger(__name__)

CONFLICT_REPLACE = "replace"
CONFLICT_REJECT = "reject"
CONFLICT_POLICIES = (CONFLICT_REPLACE, CONFLICT_REJECT)

OUTCOME_INSERTED = "inserted"
OUTCOME_REPLACED = "replaced"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_REJECTED = "rejected"
OUTCOME_FAILED = "failed"
OUTCOME_ABANDONED = "abandoned"


class UnknownFormatError(Exception):
    """The batch header matches no known column set; the whole batch is refused."""

    code = "UNKNOWN_FORMAT"


@dataclass
class ImportSettings:
    chunk_size: int = 100
    reject_sample: int = 200
    direction_policy: str = "sequence"
    cutoff_hour: int = 12
    conflict_policy: str = CONFLICT_REPLACE
    default_device_id: Optional[str] = "MANUAL_IMPORT"

    def __post_init__(self):
        if int(self.chunk_size) < 1:
            raise ValueError("chunk_size must be >= 1")
        self.conflict_policy = (self.conflict_policy or CONFLICT_REPLACE).strip().lower()
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ValueError(f"conflict_policy must be one of {', '.join(CONFLICT_POLICIES)}")


@dataclass
class ImportReport:
    mode: str = "commit"
    source: Optional[str] = None
    format: Optional[str] = None
    batch_id: Optional[str] = None
    total_rows: int = 0
    skipped: int = 0
    merged: int = 0
    imported: int = 0
    inserted: int = 0
    replaced: int = 0
    duplicates_skipped: int = 0
    last_out_updated: int = 0
    status_escalated: int = 0
    rejected: int = 0
    failed: int = 0
    failed_chunks: int = 0
    cancelled: bool = False
    abandoned: int = 0
    error: Optional[Dict[str, str]] = None
    reject_sample: int = 200
    reject_reasons: List[Dict[str, Any]] = field(default_factory=list)
    outcomes: List[Dict[str, Any]] = field(default_factory=list)

    def reject(self, row: Optional[int], reason: str, employee_id: Optional[str] = None):
        self.rejected += 1
        # bounded: the count stays exact, the sample does not grow past the cap
        if len(self.reject_reasons) < self.reject_sample:
            item = {"row": row, "reason": reason}
            if employee_id:
                item["employee_id"] = employee_id
            self.reject_reasons.append(item)

    def to_dict(self):
        return {
            "mode": self.mode,
            "source": self.source,
            "format": self.format,
            "batch_id": self.batch_id,
            "total_rows": self.total_rows,
            "skipped": self.skipped,
            "merged": self.merged,
            "imported": self.imported,
            "inserted": self.inserted,
            "replaced": self.replaced,
            "duplicates_skipped": self.duplicates_skipped,
            "last_out_updated": self.last_out_updated,
            "status_escalated": self.status_escalated,
            "rejected": self.rejected,
            "failed": self.failed,
            "failed_chunks": self.failed_chunks,
            "cancelled": self.cancelled,
            "abandoned": self.abandoned,
            "error": self.error,
            "reject_reasons": self.reject_reasons,
            "outcomes": self.outcomes,
        }


@dataclass
class _ChunkTally:
    inserted: int = 0
    replaced: int = 0
    duplicates: int = 0
    last_out_updated: int = 0
    status_escalated: int = 0
    rejects: List[tuple] = field(default_factory=list)
    outcomes: List[Dict[str, Any]] = field(default_factory=list)


def _outcome(day: MergedDay, status: Optional[str], outcome: str) -> Dict[str, Any]:
    return {
        "employee_id": day.employee_code,
        "date": day.work_date.isoformat(),
        "status": status,
        "outcome": outcome,
    }


class AttendanceImporter:
    """
    detect -> normalize -> merge -> duplicate guard -> persist.

    Persistence runs in chunks of `settings.chunk_size`, one transaction each.
    A failing chunk is rolled back on its own and counted as failed; later
    chunks still run. In dry mode every chunk is rolled back instead of
    committed, so the report shows what a commit would do.
    """

    def __init__(
        self,
        session,
        settings: Optional[ImportSettings] = None,
        directory: Optional[EmployeeDirectory] = None,
        repository: Optional[DayRecordRepository] = None,
    ):
        self.session = session
        self.settings = settings or ImportSettings()
        self.directory = directory or EmployeeDirectory(session)
        self.repository = repository or DayRecordRepository(session)
        self.guard = DuplicateGuard(self.repository)
        self.merger = MergeEngine(self.settings.direction_policy, self.settings.cutoff_hour)

    def new_report(self, dry_run: bool = False, source: Optional[str] = None, batch_id: Optional[str] = None) -> ImportReport:
        return ImportReport(
            mode="dry" if dry_run else "commit",
            source=source,
            batch_id=batch_id or uuid.uuid4().hex,
            reject_sample=self.settings.reject_sample,
        )

    # ---------- spreadsheet / JSON rows ----------

    def detect_format(self, rows: List[Mapping[str, Any]]) -> DetectedFormat:
        fmt = detect(rows)
        if not fmt.is_known:
            raise UnknownFormatError(
                "unrecognised file format: expected the device export or the template columns "
                "(employeeId, date, checkIn)"
            )
        return fmt

    def run(
        self,
        rows: List[Mapping[str, Any]],
        dry_run: bool = False,
        source: Optional[str] = None,
        source_batch_id: Optional[str] = None,
        row_offset: int = 2,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ImportReport:
        """
        Import one homogeneous batch. `row_offset` is the number reported for
        rows[0] (2 for a file whose line 1 is the header).
        """
        report = self.new_report(dry_run, source, source_batch_id)
        report.total_rows = len(rows)

        try:
            fmt = self.detect_format(rows)
        except UnknownFormatError as e:
            report.format = "UNKNOWN"
            report.error = {"code": e.code, "message": str(e)}
            log.warning("[import] batch %s refused: %s", report.batch_id, e)
            return report
        report.format = fmt.kind.value

        normalizer = RowNormalizer(report.batch_id, self.settings.default_device_id)
        events: List[RawEvent] = []
        for idx, row in enumerate(rows, start=row_offset):
            try:
                got = normalizer.normalize(row, fmt, idx)
            except RowRejected as e:
                report.reject(idx, e.reason, _row_code(row, fmt))
                continue
            if not got:
                report.skipped += 1
                continue
            events.extend(got)

        emp_map = self.directory.load({ev.employee_code for ev in events})
        events = self._known_employees(events, emp_map, report)

        return self.ingest_events(events, emp_map, report, dry_run=dry_run, should_stop=should_stop)

    def _known_employees(self, events: List[RawEvent], emp_map: Dict[str, Employee], report: ImportReport) -> List[RawEvent]:
        kept = []
        seen_rows = set()
        for ev in events:
            emp = emp_map.get(ev.employee_code)
            if emp is not None and emp.active:
                kept.append(ev)
                continue
            # one rejection per source row, even when it produced IN and OUT
            key = (ev.row_number, ev.employee_code)
            if key in seen_rows:
                continue
            seen_rows.add(key)
            why = "unknown employee" if emp is None else "inactive employee"
            report.reject(ev.row_number, f"{why} {ev.employee_code}", ev.employee_code)
        return kept

    # ---------- shared tail: merge, guard, persist ----------

    def ingest_events(
        self,
        events: List[RawEvent],
        emp_map: Mapping[str, Employee],
        report: ImportReport,
        dry_run: bool = False,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ImportReport:
        result = self.merger.merge(events, emp_map)
        report.merged = result.total

        for day in result.missing_in:
            report.reject(
                day.first_row,
                f"no check-in for {day.employee_code} on {day.work_date.isoformat()}",
                day.employee_code,
            )

        days = []
        for day in result.records:
            if day.employee is None:
                report.reject(day.first_row, f"unknown employee {day.employee_code}", day.employee_code)
                continue
            days.append(day)

        size = int(self.settings.chunk_size)
        for start in range(0, len(days), size):
            if should_stop is not None and should_stop():
                report.cancelled = True
                report.abandoned = len(days) - start
                report.outcomes.extend(_outcome(d, None, OUTCOME_ABANDONED) for d in days[start:])
                log.info("[import] batch %s stopped, %s day records abandoned", report.batch_id, report.abandoned)
                break
            self._run_chunk(days[start:start + size], report, dry_run, start // size + 1)

        log.info(
            "[import] batch %s %s: merged=%s imported=%s duplicates=%s rejected=%s failed=%s",
            report.batch_id, report.mode, report.merged, report.imported,
            report.duplicates_skipped, report.rejected, report.failed,
        )
        return report

    def _run_chunk(self, chunk: List[MergedDay], report: ImportReport, dry_run: bool, chunk_no: int):
        tally = _ChunkTally()
        try:
            for day in chunk:
                self._persist_one(day, tally)
                self.session.flush()
            if dry_run:
                self.session.rollback()
            else:
                self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            log.exception("[import] batch %s chunk %s rolled back", report.batch_id, chunk_no)
            report.failed_chunks += 1
            report.failed += len(chunk)
            report.outcomes.extend(_outcome(d, None, OUTCOME_FAILED) for d in chunk)
            return

        report.inserted += tally.inserted
        report.replaced += tally.replaced
        report.imported += tally.inserted + tally.replaced
        report.duplicates_skipped += tally.duplicates
        report.last_out_updated += tally.last_out_updated
        report.status_escalated += tally.status_escalated
        for row, reason, code in tally.rejects:
            report.reject(row, reason, code)
        report.outcomes.extend(tally.outcomes)

    def _absorb(self, existing: DayRecord, day: MergedDay, tally: _ChunkTally):
        """Fold a re-imported day into its stored record: extend last_out, PRESENT -> LATE only."""
        tally.duplicates += 1
        if day.last_out is not None and (existing.last_out is None or day.last_out > existing.last_out):
            existing.last_out = day.last_out
            tally.last_out_updated += 1
        if (
            not day.employee.is_flexible
            and day.status_hint == STATUS_LATE
            and existing.status == STATUS_PRESENT
        ):
            existing.status = STATUS_LATE
            tally.status_escalated += 1
        tally.outcomes.append(_outcome(day, existing.status, OUTCOME_DUPLICATE))

    def _persist_one(self, day: MergedDay, tally: _ChunkTally):
        emp = day.employee
        existing = self.guard.existing(emp.id, day.work_date, day.first_in)
        if existing is not None:
            self._absorb(existing, day, tally)
            return

        # flexible-schedule staff are never late, whatever the source says
        if emp.is_flexible:
            status = STATUS_PRESENT
        else:
            status = day.status_hint or classify(day, emp)
        last_out = day.last_out

        outcome = OUTCOME_INSERTED
        current = self.repository.find_active(emp.id, day.work_date)
        if current is not None:
            if self.settings.conflict_policy == CONFLICT_REJECT:
                tally.rejects.append((
                    day.first_row,
                    f"{day.employee_code} already has a record on {day.work_date.isoformat()} "
                    f"with check-in {current.first_in.strftime('%H:%M:%S')}",
                    day.employee_code,
                ))
                tally.outcomes.append(_outcome(day, status, OUTCOME_REJECTED))
                return
            if day.first_in >= current.first_in:
                # first_in only ever moves earlier; a later check-in is a partial re-import
                self._absorb(current, day, tally)
                return
            if current.last_out is not None and (last_out is None or current.last_out > last_out):
                last_out = current.last_out
            if current.status == STATUS_LATE:
                status = STATUS_LATE
            self.repository.tombstone(current)
            # the tombstone must land before the replacement hits the unique index
            self.session.flush()
            outcome = OUTCOME_REPLACED

        self.repository.add(DayRecord(
            employee_id=emp.id,
            employee_code=day.employee_code,
            employee_name=day.employee_name,
            work_date=day.work_date,
            first_in=day.first_in,
            last_out=last_out,
            status=status,
            verification_method=day.verification_method,
            source_device_id=day.source_device_id,
            source_batch_id=day.source_batch_id,
            deleted=False,
        ))
        if outcome == OUTCOME_REPLACED:
            tally.replaced += 1
        else:
            tally.inserted += 1
        tally.outcomes.append(_outcome(day, status, outcome))


def _row_code(row: Mapping[str, Any], fmt: DetectedFormat) -> Optional[str]:
    v = fmt.value(row, "employee_id")
    if v is None:
        return None
    s = str(v).strip()
    return s or None
