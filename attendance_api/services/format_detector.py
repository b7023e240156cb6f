# attendance_api/services/format_detector.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Sequence

log = logging.getLogger(__name__)


class FormatKind(str, Enum):
    DEVICE_EXPORT = "DEVICE_EXPORT"
    TEMPLATE = "TEMPLATE"
    UNKNOWN = "UNKNOWN"


# ---- device export (Fingerspot) ----
# The vendor export abbreviates headers on some firmware ("Tanggal Ab") and spells
# them out on others ("Tanggal Absensi"); both are accepted.
DEVICE_COLUMNS: Dict[str, Sequence[str]] = {
    "employee_id": ("NIK", "ID"),
    "name": ("Nama",),
    "punch_type": ("Tipe Absensi", "Tipe Absen"),
    "date": ("Tanggal Absensi", "Tanggal Ab"),
    "time": ("Waktu Absensi", "Waktu Abs"),
    "verification": ("Verifikasi",),
    "device": ("Cloud ID",),
}

# presence of any one of these marks a batch as a device export
DEVICE_MARKERS = (
    "Cloud ID",
    "NIK",
    "Tipe Absen",
    "Tipe Absensi",
    "Tanggal Ab",
    "Tanggal Absensi",
    "Waktu Abs",
    "Waktu Absensi",
)

# ---- manual template ----
TEMPLATE_REQUIRED: Dict[str, Sequence[str]] = {
    "employee_id": ("employeeId", "employee_id", "nip"),
    "date": ("date", "tanggal"),
    "check_in": ("checkIn", "check_in", "jam_masuk"),
}

TEMPLATE_OPTIONAL: Dict[str, Sequence[str]] = {
    "name": ("name", "nama"),
    "role": ("role", "jabatan"),
    "check_out": ("checkOut", "check_out", "jam_keluar"),
    "status": ("status",),
    "verification": ("verificationMethod", "verification_method"),
}


def _key(col: Any) -> str:
    return " ".join(str(col).split()).lower()


@dataclass(frozen=True)
class DetectedFormat:
    """
    Result of format detection: the kind plus the actual header used for each
    logical field, so normalisation never guesses column names again.
    """
    kind: FormatKind
    columns: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_known(self) -> bool:
        return self.kind is not FormatKind.UNKNOWN

    def value(self, row: Mapping[str, Any], logical: str) -> Any:
        col = self.columns.get(logical)
        if col is None:
            return None
        return row.get(col)


UNKNOWN_FORMAT = DetectedFormat(FormatKind.UNKNOWN, {})


def _resolve(headers: Iterable[Any], wanted: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    by_key = {}
    for h in headers:
        if h is None:
            continue
        by_key.setdefault(_key(h), h)
    out: Dict[str, str] = {}
    for logical, aliases in wanted.items():
        for alias in aliases:
            actual = by_key.get(_key(alias))
            if actual is not None:
                out[logical] = actual
                break
    return out


def detect(rows: List[Mapping[str, Any]]) -> DetectedFormat:
    """
    Classify a batch by the header set of its first row.

    Batches are assumed homogeneous, so later rows are not inspected.
    """
    if not rows:
        return UNKNOWN_FORMAT

    headers = [h for h in rows[0].keys() if h is not None]
    keys = {_key(h) for h in headers}

    if any(_key(m) in keys for m in DEVICE_MARKERS):
        columns = _resolve(headers, DEVICE_COLUMNS)
        log.info("[format] detected device export, columns=%s", sorted(columns))
        return DetectedFormat(FormatKind.DEVICE_EXPORT, columns)

    required = _resolve(headers, TEMPLATE_REQUIRED)
    if len(required) == len(TEMPLATE_REQUIRED):
        columns = {**required, **_resolve(headers, TEMPLATE_OPTIONAL)}
        log.info("[format] detected template, columns=%s", sorted(columns))
        return DetectedFormat(FormatKind.TEMPLATE, columns)

    log.warning("[format] unknown file format, columns=%s", headers)
    return UNKNOWN_FORMAT


def detect_kind(rows: List[Mapping[str, Any]]) -> FormatKind:
    return detect(rows).kind
