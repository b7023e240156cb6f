from datetime import datetime, time
from attendance_api.extensions import db

HOLIDAY_FIXED = "FIXED"
HOLIDAY_LUNAR = "LUNAR"
HOLIDAY_FORMULA = "FORMULA"


def _time_secs(t: time) -> int:
    return t.hour * 3600 + t.minute * 60 + t.second


class Shift(db.Model):
    __tablename__ = "shifts"
    id = db.Column(db.Integer, primary_key=True)
    code          = db.Column(db.String(20), nullable=False, unique=True)
    name          = db.Column(db.String(60), nullable=False)
    start_time    = db.Column(db.Time, nullable=False)
    end_time      = db.Column(db.Time, nullable=False)
    grace_minutes = db.Column(db.Integer, nullable=False, default=0)
    active        = db.Column(db.Boolean, nullable=False, default=True)
    created_at    = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_overnight(self) -> bool:
        return self.end_time <= self.start_time

    @property
    def duration_minutes(self) -> int:
        # wraps past midnight for overnight shifts
        secs = (_time_secs(self.end_time) - _time_secs(self.start_time)) % 86400
        return secs // 60

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "start_time": self.start_time.strftime("%H:%M:%S") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M:%S") if self.end_time else None,
            "grace_minutes": int(self.grace_minutes or 0),
            "is_overnight": self.is_overnight,
            "duration_minutes": self.duration_minutes,
        }


class HolidayRule(db.Model):
    """
    Perpetual holiday definition, expanded per calendar year into HolidayCache.

      FIXED   -> month + day every year
      LUNAR   -> lunar_month + lunar_day, converted by an external collaborator
      FORMULA -> formula_code (EASTER, GOOD_FRIDAY, ...)
    """
    __tablename__ = "holiday_rules"
    id = db.Column(db.Integer, primary_key=True)
    name         = db.Column(db.String(255), nullable=False)
    category     = db.Column(db.String(32), nullable=False, default="NATIONAL")
    kind         = db.Column(db.String(16), nullable=False)
    month        = db.Column(db.SmallInteger, nullable=True)
    day          = db.Column(db.SmallInteger, nullable=True)
    lunar_month  = db.Column(db.SmallInteger, nullable=True)
    lunar_day    = db.Column(db.SmallInteger, nullable=True)
    formula_code = db.Column(db.String(50), nullable=True)
    year_from    = db.Column(db.Integer, nullable=True)
    year_to      = db.Column(db.Integer, nullable=True)   # null = perpetual
    active       = db.Column(db.Boolean, nullable=False, default=True)
    created_at   = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("kind in ('FIXED','LUNAR','FORMULA')", name="ck_holiday_rule_kind"),
        db.Index("ix_holiday_rule_years", "year_from", "year_to"),
    )

    def applies_to(self, year: int) -> bool:
        if not self.active:
            return False
        if self.year_from is not None and year < self.year_from:
            return False
        if self.year_to is not None and year > self.year_to:
            return False
        return True


class HolidayCache(db.Model):
    __tablename__ = "holiday_cache"
    id = db.Column(db.Integer, primary_key=True)
    date       = db.Column(db.Date, nullable=False, unique=True)
    name       = db.Column(db.String(255), nullable=False)
    category   = db.Column(db.String(32), nullable=False)
    year       = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "name": self.name,
            "category": self.category,
        }
