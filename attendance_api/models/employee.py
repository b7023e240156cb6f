from datetime import datetime
from typing import Optional

from attendance_api.extensions import db

ROLE_FLEXIBLE = "FLEXIBLE"
ROLE_SHIFT = "SHIFT"
ROLES = (ROLE_FLEXIBLE, ROLE_SHIFT)

# lecturers (DOSEN) are exempt from lateness, staff (KARYAWAN) work fixed shifts
_ROLE_ALIASES = {
    "flexible": ROLE_FLEXIBLE,
    "flex": ROLE_FLEXIBLE,
    "dosen": ROLE_FLEXIBLE,
    "lecturer": ROLE_FLEXIBLE,
    "shift": ROLE_SHIFT,
    "shift_bound": ROLE_SHIFT,
    "karyawan": ROLE_SHIFT,
    "staff": ROLE_SHIFT,
}


def normalize_role(raw) -> Optional[str]:
    """Map a free-text role label onto FLEXIBLE / SHIFT, or None when unrecognised."""
    if raw is None:
        return None
    s = str(raw).strip().lower().replace("-", "_").replace(" ", "_")
    return _ROLE_ALIASES.get(s)


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)

    code           = db.Column(db.String(32), nullable=False, unique=True)   # business employeeId (NIP)
    device_user_id = db.Column(db.String(32), nullable=True, unique=True)    # enrolment number on the terminal
    name           = db.Column(db.String(160), nullable=False)
    role           = db.Column(db.String(16), nullable=False, default=ROLE_SHIFT)
    shift_id       = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="SET NULL"), nullable=True, index=True)
    active         = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("role in ('FLEXIBLE','SHIFT')", name="ck_employee_role"),
        db.Index("ix_emp_role_active", "role", "active"),
    )

    shift = db.relationship("Shift", lazy="joined")

    @property
    def is_flexible(self) -> bool:
        return self.role == ROLE_FLEXIBLE

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "device_user_id": self.device_user_id,
            "name": self.name,
            "role": self.role,
            "shift_id": self.shift_id,
            "active": bool(self.active),
        }
