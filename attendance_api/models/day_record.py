# attendance_api/models/day_record.py
from __future__ import annotations

from datetime import datetime, date
from typing import Optional, Dict, Any

from sqlalchemy import Index, CheckConstraint, ForeignKey, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.extensions import db

STATUS_PRESENT = "PRESENT"
STATUS_LATE = "LATE"
STATUSES = (STATUS_PRESENT, STATUS_LATE)


class DayRecord(db.Model):
    """
    The single canonical attendance entry for one employee on one calendar date.

    Built by the ingestion pipeline from merged punches:
      first_in  -> earliest IN punch of the day (never null once persisted)
      last_out  -> latest OUT punch of the day (null until one is seen)
      status    -> PRESENT | LATE, decided once at ingestion time
      deleted   -> tombstone; rows are never physically removed

    Absence is not stored: a working day without an active row is an absence.
    """

    __tablename__ = "day_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), index=True, nullable=False
    )
    employee_code: Mapped[str] = mapped_column(db.String(32), index=True, nullable=False)
    employee_name: Mapped[Optional[str]] = mapped_column(db.String(160), nullable=True)  # cosmetic

    work_date: Mapped[date] = mapped_column(db.Date, nullable=False)
    first_in: Mapped[datetime] = mapped_column(db.DateTime, nullable=False)
    last_out: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=STATUS_PRESENT)

    # provenance
    verification_method: Mapped[Optional[str]] = mapped_column(db.String(32), nullable=True)
    source_device_id: Mapped[Optional[str]] = mapped_column(db.String(64), index=True, nullable=True)
    source_batch_id: Mapped[Optional[str]] = mapped_column(db.String(64), index=True, nullable=True)

    deleted: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    employee = relationship("Employee", lazy="joined")

    __table_args__ = (
        CheckConstraint("status in ('PRESENT','LATE')", name="ck_day_record_status"),
        # idempotency key of the duplicate guard; enforced here so concurrent
        # ingestion runs cannot double-insert
        Index(
            "uq_day_record_first_in",
            "employee_id", "work_date", "first_in",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
        # at most one active record per employee/day
        Index(
            "uq_day_record_employee_day",
            "employee_id", "work_date",
            unique=True,
            postgresql_where=text("deleted = false"),
            sqlite_where=text("deleted = 0"),
        ),
        Index("ix_day_record_period", "employee_id", "work_date", "deleted"),
    )

    @property
    def is_late(self) -> bool:
        return self.status == STATUS_LATE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": self.employee_code,
            "employee_name": self.employee_name,
            "date": self.work_date.isoformat(),
            "first_in": self.first_in.isoformat() if self.first_in else None,
            "last_out": self.last_out.isoformat() if self.last_out else None,
            "status": self.status,
            "verification_method": self.verification_method,
            "source_device_id": self.source_device_id,
            "source_batch_id": self.source_batch_id,
            "deleted": bool(self.deleted),
        }
