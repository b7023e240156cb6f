# attendance_api/services/calendar_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Optional, Protocol, Set

from dateutil.easter import easter
from sqlalchemy.exc import SQLAlchemyError

from attendance_api.models.attendance import (
    HolidayRule,
    HolidayCache,
    HOLIDAY_FIXED,
    HOLIDAY_LUNAR,
    HOLIDAY_FORMULA,
)

log = logging.getLogger(__name__)

# python weekday(): 0=Mon .. 6=Sun
DEFAULT_WEEKEND = (5, 6)

# movable feasts, as day offsets from Western Easter Sunday
FORMULA_OFFSETS = {
    "EASTER": 0,
    "GOOD_FRIDAY": -2,
    "EASTER_MONDAY": 1,
    "ASCENSION": 39,
    "PENTECOST": 49,
}


class LunarConverter(Protocol):
    """External collaborator converting a lunar (e.g. Hijri) month/day to solar dates."""

    def to_solar(self, year: int, lunar_month: int, lunar_day: int) -> Iterable[date]:
        ...


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str
    category: str

    def to_dict(self):
        return {"date": self.date.isoformat(), "name": self.name, "category": self.category}


class CalendarService:
    """
    Working-day calendar: a day is a working day iff it is not a weekend day
    and not a holiday of its year.

    Holidays are read from the per-year HolidayCache table. A year with no cached
    rows is generated synchronously from HolidayRule (degraded path, logged). With
    `persist_on_miss` the generated year is written back; read-only callers such as
    the aggregator pass False and keep the result in memory only.

    A year whose rules yield no holidays has no cache rows, so it takes the miss
    path again on every new service instance. Within one instance it is memoised.
    """

    def __init__(
        self,
        session,
        lunar_converter: Optional[LunarConverter] = None,
        weekend_days: Iterable[int] = DEFAULT_WEEKEND,
        persist_on_miss: bool = True,
    ):
        self.session = session
        self.lunar_converter = lunar_converter
        self.weekend_days = frozenset(int(d) for d in weekend_days)
        self.persist_on_miss = persist_on_miss
        self._years: Dict[int, Dict[date, Holiday]] = {}

    # ---------- public API ----------

    def is_working_day(self, d: date) -> bool:
        if d.weekday() in self.weekend_days:
            return False
        return d not in self.holidays_for_year(d.year)

    def working_days(self, start: date, end: date) -> int:
        """Count working days in [start, end], both endpoints included."""
        if end < start:
            return 0
        count = 0
        cur = start
        one = timedelta(days=1)
        while cur <= end:
            if self.is_working_day(cur):
                count += 1
            cur += one
        return count

    def holidays_in_range(self, start: date, end: date) -> Set[Holiday]:
        if end < start:
            return set()
        out: Set[Holiday] = set()
        for year in range(start.year, end.year + 1):
            for d, hol in self.holidays_for_year(year).items():
                if start <= d <= end:
                    out.add(hol)
        return out

    def holidays_for_year(self, year: int) -> Dict[date, Holiday]:
        cached = self._years.get(year)
        if cached is not None:
            return cached

        rows = self.session.query(HolidayCache).filter(HolidayCache.year == year).all()
        if rows:
            by_date = {r.date: Holiday(r.date, r.name, r.category) for r in rows}
        else:
            log.warning("[calendar] holiday cache miss for %s, generating on demand (degraded)", year)
            by_date = self.generate_year(year, persist=self.persist_on_miss)

        self._years[year] = by_date
        return by_date

    # ---------- generation ----------

    def expand_rules(self, year: int) -> Dict[date, Holiday]:
        """Expand active HolidayRule rows into concrete dates of `year` (no writes)."""
        rules = (
            self.session.query(HolidayRule)
            .filter(HolidayRule.active.is_(True))
            .order_by(HolidayRule.id.asc())
            .all()
        )

        by_date: Dict[date, Holiday] = {}

        def _put(d: date, rule: HolidayRule):
            prev = by_date.get(d)
            if prev is None:
                by_date[d] = Holiday(d, rule.name, rule.category)
            elif rule.name not in prev.name.split(" / "):
                # two rules on one date share the cache row
                by_date[d] = Holiday(d, f"{prev.name} / {rule.name}", prev.category)

        for rule in rules:
            if not rule.applies_to(year):
                continue
            for d in self._dates_for(rule, year):
                _put(d, rule)
        return by_date

    def generate_year(self, year: int, persist: bool = True) -> Dict[date, Holiday]:
        by_date = self.expand_rules(year)
        if not persist:
            return by_date

        try:
            self.session.query(HolidayCache).filter(HolidayCache.year == year).delete(
                synchronize_session=False
            )
            for hol in by_date.values():
                self.session.add(
                    HolidayCache(date=hol.date, name=hol.name, category=hol.category, year=year)
                )
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            log.exception("[calendar] could not persist holiday cache for %s", year)
        return by_date

    def rebuild(self, start_year: int, years: int = 1) -> int:
        """Regenerate the cache for `years` consecutive years. Returns holidays written."""
        total = 0
        for year in range(start_year, start_year + max(years, 1)):
            self._years.pop(year, None)
            total += len(self.generate_year(year))
        return total

    def _dates_for(self, rule: HolidayRule, year: int) -> Iterable[date]:
        if rule.kind == HOLIDAY_FIXED:
            try:
                return [date(year, int(rule.month), int(rule.day))]
            except (TypeError, ValueError):
                # e.g. 29 Feb outside leap years
                log.info("[calendar] rule %s has no date in %s", rule.id, year)
                return []

        if rule.kind == HOLIDAY_FORMULA:
            code = (rule.formula_code or "").strip().upper()
            offset = FORMULA_OFFSETS.get(code)
            if offset is None:
                log.warning("[calendar] unknown formula code %r on rule %s, skipped", code, rule.id)
                return []
            return [easter(year) + timedelta(days=offset)]

        if rule.kind == HOLIDAY_LUNAR:
            if self.lunar_converter is None:
                log.warning(
                    "[calendar] no lunar converter configured, lunar rule %s (%s) skipped",
                    rule.id,
                    rule.name,
                )
                return []
            dates = self.lunar_converter.to_solar(year, int(rule.lunar_month), int(rule.lunar_day))
            return [d for d in dates if d.year == year]

        log.warning("[calendar] unknown holiday kind %r on rule %s", rule.kind, rule.id)
        return []
