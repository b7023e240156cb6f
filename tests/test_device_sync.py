from datetime import datetime
from types import SimpleNamespace

from attendance_api.extensions import db
from attendance_api.models.day_record import DayRecord
from attendance_api.services.device_sync import DeviceSync
from attendance_api.services.importer import AttendanceImporter


class FakeTerminal:
    def __init__(self, records):
        self.records = records
        self.pulls = 0

    def pull_events(self):
        self.pulls += 1
        return list(self.records)


def test_sync_maps_device_users_and_merges(app, people):
    source = FakeTerminal([
        {"device_user_id": "101", "timestamp": datetime(2025, 1, 6, 7, 59), "punch": 0, "verify_type": 1},
        {"device_user_id": "101", "timestamp": datetime(2025, 1, 6, 16, 2), "punch": 1, "verify_type": 1},
        # SDK objects carry user_id/status instead of dict keys
        SimpleNamespace(user_id="201", timestamp=datetime(2025, 1, 6, 10, 15), punch=0, status=15),
        {"device_user_id": "555", "timestamp": datetime(2025, 1, 6, 8, 0)},
        {"device_user_id": "", "timestamp": datetime(2025, 1, 6, 8, 0)},
    ])
    sync = DeviceSync(AttendanceImporter(db.session), device_id="ZK-LOBBY")
    report = sync.sync(source)

    assert source.pulls == 1
    assert report.format == "TERMINAL"
    assert report.total_rows == 5
    assert report.imported == 2
    assert report.rejected == 2
    assert [r["row"] for r in report.reject_reasons] == [4, 5]

    recs = {r.employee_code: r for r in DayRecord.query.all()}
    assert recs["E001"].first_in == datetime(2025, 1, 6, 7, 59)
    assert recs["E001"].last_out == datetime(2025, 1, 6, 16, 2)
    assert recs["E001"].source_device_id == "ZK-LOBBY"
    assert recs["L001"].verification_method == "FACE"


def test_overlapping_polls_do_not_double_insert(app, people):
    records = [{"device_user_id": "102", "timestamp": datetime(2025, 1, 6, 8, 30), "punch": 0}]
    sync = DeviceSync(AttendanceImporter(db.session))
    sync.sync(FakeTerminal(records))
    second = sync.sync(FakeTerminal(records))
    assert second.duplicates_skipped == 1
    assert DayRecord.query.count() == 1
    assert DayRecord.query.one().status == "LATE"
