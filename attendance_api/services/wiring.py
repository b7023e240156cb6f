# attendance_api/services/wiring.py
"""Build services from app config. Services themselves never touch Flask."""
from __future__ import annotations

from werkzeug.utils import import_string

from attendance_api.services.aggregator import AttendanceAggregator
from attendance_api.services.calendar_service import CalendarService
from attendance_api.services.importer import AttendanceImporter, ImportSettings
from attendance_api.services.repositories import DayRecordRepository, EmployeeDirectory


def _weekend(raw) -> tuple:
    if isinstance(raw, (list, tuple)):
        return tuple(int(d) for d in raw)
    return tuple(int(p) for p in str(raw or "").split(",") if p.strip())


def import_settings_from(app) -> ImportSettings:
    cfg = app.config
    return ImportSettings(
        chunk_size=int(cfg["IMPORT_CHUNK_SIZE"]),
        reject_sample=int(cfg["IMPORT_REJECT_SAMPLE"]),
        direction_policy=cfg["PUNCH_DIRECTION_POLICY"],
        cutoff_hour=int(cfg["PUNCH_CUTOFF_HOUR"]),
        conflict_policy=cfg["DAY_RECORD_CONFLICT_POLICY"],
        default_device_id=cfg.get("DEFAULT_IMPORT_DEVICE_ID") or None,
    )


def build_importer(app, session) -> AttendanceImporter:
    return AttendanceImporter(session, import_settings_from(app))


def build_calendar(app, session, persist_on_miss: bool = True) -> CalendarService:
    converter = app.config.get("LUNAR_CONVERTER")
    if isinstance(converter, str):
        # dotted path to a class or factory, e.g. "mypkg.hijri:HijriConverter"
        converter = import_string(converter)()
    return CalendarService(
        session,
        lunar_converter=converter,
        weekend_days=_weekend(app.config["WEEKEND_DAYS"]),
        persist_on_miss=persist_on_miss,
    )


def build_aggregator(app, session) -> AttendanceAggregator:
    return AttendanceAggregator(
        DayRecordRepository(session),
        EmployeeDirectory(session),
        # summaries are read-only: a holiday cache miss is computed, never written
        build_calendar(app, session, persist_on_miss=False),
    )
