from datetime import date, datetime

import pytest

from attendance_api.models.employee import Employee, ROLE_FLEXIBLE, ROLE_SHIFT
from attendance_api.services.merge_engine import MergeEngine
from attendance_api.services.row_normalizer import DIR_IN, DIR_OUT, DIR_UNKNOWN, RawEvent


def _ev(hhmm, direction=DIR_UNKNOWN, code="E001", day=6, **kw):
    h, m = (int(x) for x in hhmm.split(":"))
    return RawEvent(employee_code=code, timestamp=datetime(2025, 1, day, h, m), direction=direction, **kw)


def test_earliest_in_latest_out():
    events = [
        _ev("17:30", DIR_OUT),
        _ev("08:12", DIR_IN),
        _ev("17:45", DIR_OUT),
        _ev("08:05", DIR_IN),
    ]
    result = MergeEngine().merge(events)
    (day,) = result.records
    assert day.first_in == datetime(2025, 1, 6, 8, 5)
    assert day.last_out == datetime(2025, 1, 6, 17, 45)
    assert result.missing_in == []


def test_groups_by_employee_and_date():
    events = [_ev("08:00", DIR_IN), _ev("08:00", DIR_IN, day=7), _ev("09:00", DIR_IN, code="E002")]
    result = MergeEngine().merge(events)
    assert [(d.employee_code, d.work_date) for d in result.records] == [
        ("E001", date(2025, 1, 6)),
        ("E001", date(2025, 1, 7)),
        ("E002", date(2025, 1, 6)),
    ]


def test_out_only_group_is_flagged_not_emitted():
    result = MergeEngine().merge([_ev("17:00", DIR_OUT, row_number=9)])
    assert result.records == []
    (day,) = result.missing_in
    assert day.first_in is None
    assert day.first_row == 9


def test_sequence_policy_first_unlabeled_is_in():
    events = [_ev("08:05"), _ev("08:12"), _ev("17:30"), _ev("17:45")]
    (day,) = MergeEngine("sequence").merge(events).records
    assert day.first_in == datetime(2025, 1, 6, 8, 5)
    assert day.last_out == datetime(2025, 1, 6, 17, 45)


def test_sequence_policy_unlabeled_before_labeled_in_is_in():
    events = [_ev("08:00"), _ev("10:00", DIR_IN)]
    (day,) = MergeEngine("sequence").merge(events).records
    assert day.first_in == datetime(2025, 1, 6, 8, 0)
    assert day.last_out is None


def test_sequence_policy_unlabeled_after_labeled_in_is_out():
    events = [_ev("07:00"), _ev("09:00", DIR_IN), _ev("17:10")]
    (day,) = MergeEngine("sequence").merge(events).records
    assert day.first_in == datetime(2025, 1, 6, 7, 0)
    assert day.last_out == datetime(2025, 1, 6, 17, 10)
    assert day.last_out >= day.first_in


def test_cutoff_policy_uses_hour_of_day():
    events = [_ev("13:00"), _ev("22:00")]
    result = MergeEngine("cutoff", cutoff_hour=12).merge(events)
    # afternoon-only punches never produce a check-in under the cutoff rule
    assert result.records == []
    assert len(result.missing_in) == 1


def test_in_policy_treats_unlabeled_as_in():
    events = [_ev("13:00"), _ev("22:00")]
    (day,) = MergeEngine("in").merge(events).records
    assert day.first_in == datetime(2025, 1, 6, 13, 0)
    assert day.last_out is None


def test_unknown_policy_is_refused():
    with pytest.raises(ValueError):
        MergeEngine("noon")


def test_name_is_backfilled_and_directory_wins():
    emp = Employee(code="E001", name="Ani Directory", role=ROLE_SHIFT)
    events = [_ev("08:00", DIR_IN, employee_name="ani (sheet)", role_hint=ROLE_FLEXIBLE)]
    (day,) = MergeEngine().merge(events, {"E001": emp}).records
    assert day.employee_name == "Ani Directory"
    assert day.employee is emp

    (day,) = MergeEngine().merge([_ev("08:00", DIR_IN, employee_name="From Sheet")]).records
    assert day.employee_name == "From Sheet"


def test_late_hint_wins_over_present():
    events = [_ev("08:00", DIR_IN, status_hint="PRESENT"), _ev("17:00", DIR_OUT, status_hint="LATE")]
    (day,) = MergeEngine().merge(events).records
    assert day.status_hint == "LATE"
