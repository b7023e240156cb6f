from datetime import date

from attendance_api.extensions import db
from attendance_api.models.attendance import HolidayCache, HolidayRule
from attendance_api.services.calendar_service import CalendarService


class FixedLunar:
    """Stands in for a Hijri converter: Shawwal 1 -> 31 Mar 2025."""

    def __init__(self):
        self.calls = []

    def to_solar(self, year, lunar_month, lunar_day):
        self.calls.append((year, lunar_month, lunar_day))
        if (year, lunar_month, lunar_day) == (2025, 10, 1):
            return [date(2025, 3, 31)]
        return []


def _rule(**kw):
    r = HolidayRule(category=kw.pop("category", "NATIONAL"), active=True, **kw)
    db.session.add(r)
    db.session.commit()
    return r


def test_weekends_are_not_working_days(app):
    cal = CalendarService(db.session)
    assert cal.is_working_day(date(2025, 1, 6))        # Monday
    assert not cal.is_working_day(date(2025, 1, 11))   # Saturday
    assert not cal.is_working_day(date(2025, 1, 12))   # Sunday


def test_working_days_is_inclusive(app):
    cal = CalendarService(db.session)
    assert cal.working_days(date(2025, 1, 6), date(2025, 1, 10)) == 5
    assert cal.working_days(date(2025, 1, 6), date(2025, 1, 6)) == 1
    assert cal.working_days(date(2025, 1, 10), date(2025, 1, 6)) == 0


def test_tuesday_holiday_is_excluded(app):
    _rule(name="Company Day", kind="FIXED", month=1, day=7)   # Tue 7 Jan 2025
    cal = CalendarService(db.session)
    assert not cal.is_working_day(date(2025, 1, 7))
    assert cal.working_days(date(2025, 1, 6), date(2025, 1, 10)) == 4
    hols = cal.holidays_in_range(date(2025, 1, 1), date(2025, 1, 31))
    assert {h.date for h in hols} == {date(2025, 1, 7)}


def test_cache_miss_generates_and_persists(app):
    _rule(name="Independence Day", kind="FIXED", month=8, day=17)
    cal = CalendarService(db.session)
    assert HolidayCache.query.filter_by(year=2025).count() == 0

    assert date(2025, 8, 17) in cal.holidays_for_year(2025)
    assert HolidayCache.query.filter_by(year=2025).count() == 1

    # a fresh service reads the cache instead of the rules
    db.session.query(HolidayRule).delete()
    db.session.commit()
    assert date(2025, 8, 17) in CalendarService(db.session).holidays_for_year(2025)


def test_formula_holidays_follow_easter(app):
    _rule(name="Good Friday", kind="FORMULA", formula_code="GOOD_FRIDAY")
    _rule(name="Ascension", kind="FORMULA", formula_code="ascension")
    _rule(name="Bogus", kind="FORMULA", formula_code="NOPE")
    hols = CalendarService(db.session).holidays_for_year(2025)
    # Easter 2025 is 20 April
    assert set(hols) == {date(2025, 4, 18), date(2025, 5, 29)}


def test_lunar_rules_use_the_converter(app):
    _rule(name="Idul Fitri", kind="LUNAR", lunar_month=10, lunar_day=1, category="RELIGIOUS")
    conv = FixedLunar()
    cal = CalendarService(db.session, lunar_converter=conv)
    assert not cal.is_working_day(date(2025, 3, 31))
    assert conv.calls == [(2025, 10, 1)]
    assert cal.holidays_for_year(2025)[date(2025, 3, 31)].category == "RELIGIOUS"


def test_lunar_rules_skipped_without_converter(app):
    _rule(name="Idul Fitri", kind="LUNAR", lunar_month=10, lunar_day=1)
    assert CalendarService(db.session).holidays_for_year(2025) == {}


def test_rules_outside_their_years_do_not_apply(app):
    _rule(name="One-off", kind="FIXED", month=1, day=8, year_from=2024, year_to=2024)
    cal = CalendarService(db.session)
    assert cal.is_working_day(date(2025, 1, 8))
    assert not cal.is_working_day(date(2024, 1, 8))


def test_two_rules_on_one_date_share_the_row(app):
    _rule(name="A", kind="FIXED", month=5, day=1)
    _rule(name="B", kind="FIXED", month=5, day=1)
    hols = CalendarService(db.session).holidays_for_year(2025)
    assert hols[date(2025, 5, 1)].name == "A / B"


def test_rebuild_counts_generated_holidays(app):
    _rule(name="New Year", kind="FIXED", month=1, day=1)
    _rule(name="Leap", kind="FIXED", month=2, day=29)
    written = CalendarService(db.session).rebuild(2024, 2)
    # 29 Feb exists only in 2024
    assert written == 3
    assert HolidayCache.query.count() == 3


def test_custom_weekend(app):
    cal = CalendarService(db.session, weekend_days=(4, 5))   # Fri, Sat
    assert cal.is_working_day(date(2025, 1, 12))       # Sunday
    assert not cal.is_working_day(date(2025, 1, 10))   # Friday


def test_read_only_miss_computes_without_writing(app, monkeypatch):
    _rule(name="Independence Day", kind="FIXED", month=8, day=17)
    commits = []
    monkeypatch.setattr(db.session(), "commit", lambda: commits.append(1))

    cal = CalendarService(db.session, persist_on_miss=False)
    assert date(2025, 8, 17) in cal.holidays_for_year(2025)
    assert commits == []
    assert HolidayCache.query.count() == 0


def test_empty_year_is_memoised_per_instance(app, monkeypatch):
    cal = CalendarService(db.session, persist_on_miss=False)
    calls = []
    real = cal.expand_rules

    def counting(year):
        calls.append(year)
        return real(year)

    monkeypatch.setattr(cal, "expand_rules", counting)
    assert cal.working_days(date(2025, 1, 6), date(2025, 1, 10)) == 5
    assert cal.working_days(date(2025, 2, 3), date(2025, 2, 7)) == 5
    assert calls == [2025]
