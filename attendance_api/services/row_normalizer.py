# attendance_api/services/row_normalizer.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, date, time as _time, timedelta
from typing import Any, List, Mapping, Optional

from attendance_api.models.day_record import STATUS_PRESENT, STATUS_LATE
from attendance_api.models.employee import normalize_role
from attendance_api.services.format_detector import DetectedFormat, FormatKind

DIR_IN = "IN"
DIR_OUT = "OUT"
DIR_UNKNOWN = "UNKNOWN"

DEFAULT_TEMPLATE_VERIFICATION = "MANUAL"
DEFAULT_DEVICE_VERIFICATION = "FINGERPRINT"


class RowRejected(Exception):
    """A row that cannot become an event; carries a human-readable reason."""

    def __init__(self, reason: str, row_number: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.row_number = row_number


@dataclass
class RawEvent:
    """One normalised punch, before merging into a day record."""

    employee_code: str
    timestamp: datetime
    direction: str = DIR_UNKNOWN
    verification_method: str = DEFAULT_TEMPLATE_VERIFICATION
    source_batch_id: Optional[str] = None
    source_device_id: Optional[str] = None
    employee_name: Optional[str] = None
    role_hint: Optional[str] = None
    status_hint: Optional[str] = None
    row_number: Optional[int] = None
    # the calendar day this punch is booked on; a template check-out that wraps
    # past midnight stays on the row's date
    work_date: Optional[date] = None

    def __post_init__(self):
        if self.work_date is None:
            self.work_date = self.timestamp.date()


# ---------- parsing helpers ----------
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[ T].*)?$")
_DMY_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() in ("", "null"))


def _text(v: Any) -> Optional[str]:
    if _blank(v):
        return None
    if isinstance(v, float) and v.is_integer():
        # spreadsheet cells hand numeric ids back as floats
        v = int(v)
    return str(v).strip()


def parse_date(value: Any) -> Optional[date]:
    """
    Accept YYYY-MM-DD (optionally followed by a time part) and DD/MM/YYYY.
    Anything else, including impossible dates, returns None.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _blank(value):
        return None
    s = str(value).strip()
    m = _ISO_DATE.match(s)
    if m:
        y, mo, d = m.groups()
    else:
        m = _DMY_DATE.match(s)
        if not m:
            return None
        d, mo, y = m.groups()
    try:
        return date(int(y), int(mo), int(d))
    except ValueError:
        return None


def parse_time(value: Any) -> Optional[str]:
    """Accept HH:MM and HH:MM:SS; return a normalised HH:MM:SS string or None."""
    if isinstance(value, datetime):
        value = value.time()
    if isinstance(value, _time):
        return value.strftime("%H:%M:%S")
    if _blank(value):
        return None
    m = _TIME.match(str(value).strip())
    if not m:
        return None
    h, mi, s = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
    if h > 23 or mi > 59 or s > 59:
        return None
    return f"{h:02d}:{mi:02d}:{s:02d}"


def combine(d: date, hms: str) -> datetime:
    h, m, s = (int(x) for x in hms.split(":"))
    return datetime.combine(d, _time(h, m, s))


def normalize_direction(raw: Any) -> str:
    """Map a punch-type label to IN / OUT, or UNKNOWN when it says neither."""
    if _blank(raw):
        return DIR_UNKNOWN
    s = " ".join(str(raw).strip().lower().split())
    if "masuk" in s or s in ("in", "i", "check in", "checkin", "check-in", "c/in", "entry", "enter"):
        return DIR_IN
    if "pulang" in s or "keluar" in s or s in (
        "out", "o", "check out", "checkout", "check-out", "c/out", "exit", "leave",
    ):
        return DIR_OUT
    return DIR_UNKNOWN


_VERIFICATION_ALIASES = {
    "SIDIK_JARI": "FINGERPRINT",
    "FINGER": "FINGERPRINT",
    "WAJAH": "FACE",
    "KARTU": "CARD",
    "KATA_SANDI": "PASSWORD",
}


def normalize_verification(raw: Any, default: str) -> str:
    if _blank(raw):
        return default
    s = "_".join(str(raw).strip().upper().split())
    return _VERIFICATION_ALIASES.get(s, s)


def normalize_status(raw: Any) -> Optional[str]:
    if _blank(raw):
        return None
    s = str(raw).strip().upper()
    if s in (STATUS_PRESENT, "HADIR"):
        return STATUS_PRESENT
    if s in (STATUS_LATE, "TERLAMBAT"):
        return STATUS_LATE
    raise RowRejected(f"status must be PRESENT or LATE, got {raw!r}")


# ZK-style terminal codes
_TERMINAL_PUNCH = {0: DIR_IN, 1: DIR_OUT, 2: DIR_OUT, 3: DIR_IN, 4: DIR_IN, 5: DIR_OUT}
_TERMINAL_VERIFY = {0: "PASSWORD", 1: "FINGERPRINT", 4: "CARD", 15: "FACE"}


# ---------- normaliser ----------
class RowNormalizer:
    """
    Turn loosely-typed rows into RawEvents.

    normalize() returns an empty list for a row whose required fields are all
    blank (a skipped line, not an error) and raises RowRejected for rows that
    are partially filled or unparseable.
    """

    def __init__(self, source_batch_id: Optional[str] = None, default_device_id: Optional[str] = None):
        self.source_batch_id = source_batch_id
        self.default_device_id = default_device_id

    def normalize(self, row: Mapping[str, Any], fmt: DetectedFormat, row_number: Optional[int] = None) -> List[RawEvent]:
        try:
            if fmt.kind is FormatKind.TEMPLATE:
                return self._template(row, fmt, row_number)
            if fmt.kind is FormatKind.DEVICE_EXPORT:
                return self._device_export(row, fmt, row_number)
        except RowRejected as e:
            e.row_number = row_number
            raise
        raise ValueError(f"cannot normalise rows of format {fmt.kind.value}")

    # ---- template: one row per employee/day, check-in required ----
    def _template(self, row, fmt: DetectedFormat, row_number) -> List[RawEvent]:
        emp = _text(fmt.value(row, "employee_id"))
        date_raw = fmt.value(row, "date")
        in_raw = fmt.value(row, "check_in")

        if emp is None and _blank(date_raw) and _blank(in_raw):
            return []
        if emp is None:
            raise RowRejected("employee id is blank")
        if _blank(date_raw):
            raise RowRejected("missing required field: date")
        if _blank(in_raw):
            raise RowRejected("missing required field: checkIn")

        day = parse_date(date_raw)
        if day is None:
            raise RowRejected(f"unparseable date {date_raw!r} (use YYYY-MM-DD or DD/MM/YYYY)")
        check_in = parse_time(in_raw)
        if check_in is None:
            raise RowRejected(f"unparseable checkIn {in_raw!r} (use HH:MM or HH:MM:SS)")

        check_out = None
        out_raw = fmt.value(row, "check_out")
        if not _blank(out_raw):
            check_out = parse_time(out_raw)
            if check_out is None:
                raise RowRejected(f"unparseable checkOut {out_raw!r} (use HH:MM or HH:MM:SS)")

        role_raw = fmt.value(row, "role")
        role = None
        if not _blank(role_raw):
            role = normalize_role(role_raw)
            if role is None:
                raise RowRejected(f"role must be FLEXIBLE or SHIFT, got {role_raw!r}")

        common = dict(
            employee_code=emp,
            verification_method=normalize_verification(
                fmt.value(row, "verification"), DEFAULT_TEMPLATE_VERIFICATION
            ),
            source_batch_id=self.source_batch_id,
            source_device_id=self.default_device_id,
            employee_name=_text(fmt.value(row, "name")),
            role_hint=role,
            status_hint=normalize_status(fmt.value(row, "status")),
            row_number=row_number,
            work_date=day,
        )

        in_ts = combine(day, check_in)
        events = [RawEvent(timestamp=in_ts, direction=DIR_IN, **common)]
        if check_out is not None:
            out_ts = combine(day, check_out)
            if out_ts < in_ts:
                # overnight: check-out happened on the following morning
                out_ts += timedelta(days=1)
            events.append(RawEvent(timestamp=out_ts, direction=DIR_OUT, **common))
        return events

    # ---- device export: one row per punch ----
    def _device_export(self, row, fmt: DetectedFormat, row_number) -> List[RawEvent]:
        emp = _text(fmt.value(row, "employee_id"))
        date_raw = fmt.value(row, "date")
        time_raw = fmt.value(row, "time")

        if emp is None and _blank(date_raw) and _blank(time_raw):
            return []
        if emp is None:
            raise RowRejected("employee id is blank")
        if _blank(date_raw):
            raise RowRejected("missing required field: date")
        if _blank(time_raw):
            raise RowRejected("missing required field: time")

        day = parse_date(date_raw)
        if day is None:
            raise RowRejected(f"unparseable date {date_raw!r} (use YYYY-MM-DD or DD/MM/YYYY)")
        hms = parse_time(time_raw)
        if hms is None:
            raise RowRejected(f"unparseable time {time_raw!r} (use HH:MM or HH:MM:SS)")

        return [
            RawEvent(
                employee_code=emp,
                timestamp=combine(day, hms),
                direction=normalize_direction(fmt.value(row, "punch_type")),
                verification_method=normalize_verification(
                    fmt.value(row, "verification"), DEFAULT_DEVICE_VERIFICATION
                ),
                source_batch_id=self.source_batch_id,
                source_device_id=_text(fmt.value(row, "device")) or self.default_device_id,
                employee_name=_text(fmt.value(row, "name")),
                row_number=row_number,
            )
        ]

    # ---- terminal poll: already-typed records from a LogSource ----
    def normalize_terminal(self, record: Mapping[str, Any], employee_code: str,
                           row_number: Optional[int] = None) -> List[RawEvent]:
        ts = record.get("timestamp") or record.get("record_time")
        if isinstance(ts, str):
            try:
                ts = datetime.fromisoformat(ts.strip().replace(" ", "T"))
            except ValueError:
                raise RowRejected(f"unparseable timestamp {ts!r}", row_number)
        if not isinstance(ts, datetime):
            raise RowRejected("missing required field: timestamp", row_number)
        if ts.tzinfo is not None:
            # day records are kept in local wall-clock time
            ts = ts.replace(tzinfo=None)

        punch = record.get("punch")
        if isinstance(punch, int):
            direction = _TERMINAL_PUNCH.get(punch, DIR_UNKNOWN)
        else:
            direction = normalize_direction(punch)

        verify = record.get("verify_type")
        if isinstance(verify, int):
            method = _TERMINAL_VERIFY.get(verify, "OTHER")
        else:
            method = normalize_verification(verify, DEFAULT_DEVICE_VERIFICATION)

        return [
            RawEvent(
                employee_code=employee_code,
                timestamp=ts,
                direction=direction,
                verification_method=method,
                source_batch_id=self.source_batch_id,
                source_device_id=_text(record.get("device_id")) or self.default_device_id,
                row_number=row_number,
            )
        ]
