import io

from attendance_api.extensions import db
from attendance_api.models.attendance import HolidayRule
from attendance_api.models.day_record import DayRecord


def _rows():
    return [
        {"employeeId": "E001", "date": "2025-01-06", "checkIn": "08:00", "checkOut": "16:00"},
        {"employeeId": "E002", "date": "2025-01-06", "checkIn": "08:20", "checkOut": "16:00"},
        {"employeeId": "NOPE", "date": "2025-01-06", "checkIn": "08:00"},
    ]


def test_import_json_commit(client, people):
    r = client.post("/api/v1/attendance/import", json={"rows": _rows()})
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    data = body["data"]
    assert data["imported"] == 2
    assert data["rejected"] == 1
    assert data["reject_reasons"][0]["row"] == 3
    assert DayRecord.query.count() == 2


def test_import_dry_mode(client, people):
    r = client.post("/api/v1/attendance/import?mode=dry", json={"rows": _rows()})
    assert r.status_code == 200
    assert r.get_json()["data"]["mode"] == "dry"
    assert DayRecord.query.count() == 0


def test_import_csv_upload(client, people):
    csv_text = (
        "NIK,Nama,Tipe Absensi,Tanggal Absensi,Waktu Absensi,Verifikasi,Cloud ID\n"
        "E001,Ani,Masuk,06/01/2025,07:55,Sidik Jari,GZ-01\n"
        "E001,Ani,Pulang,06/01/2025,16:10,Sidik Jari,GZ-01\n"
    )
    r = client.post(
        "/api/v1/attendance/import",
        data={"file": (io.BytesIO(csv_text.encode("utf-8")), "export.csv")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["format"] == "DEVICE_EXPORT"
    assert data["imported"] == 1


def test_import_unknown_format_is_422(client, people):
    r = client.post("/api/v1/attendance/import", json={"rows": [{"a": 1}]})
    assert r.status_code == 422
    err = r.get_json()["error"]
    assert err["code"] == "UNKNOWN_FORMAT"
    assert err["detail"]["merged"] == 0
    assert err["detail"]["rejected"] == 0


def test_import_rejects_bad_mode_and_body(client, people):
    assert client.post("/api/v1/attendance/import?mode=yolo", json={"rows": _rows()}).status_code == 422
    assert client.post("/api/v1/attendance/import", json={"rows": "nope"}).status_code == 400
    assert client.post("/api/v1/attendance/import", json={"rows": []}).status_code == 400


def test_summary_endpoints(client, people):
    client.post("/api/v1/attendance/import", json={"rows": _rows()})

    r = client.get("/api/v1/attendance/summary?employee_id=E002&from=2025-01-06&to=2025-01-10")
    assert r.status_code == 200
    s = r.get_json()["data"]
    assert s["working_days"] == 5
    assert s["present_days"] == 1
    assert s["late_days"] == 1
    assert s["attendance_rate"] == 20

    r = client.get("/api/v1/attendance/summary/all?from=2025-01-06&to=2025-01-10&role=dosen")
    body = r.get_json()
    assert [s["employee_id"] for s in body["data"]] == ["L001"]
    assert body["meta"]["total"] == 1

    assert client.get("/api/v1/attendance/summary?employee_id=NOPE&from=2025-01-06&to=2025-01-10").status_code == 404
    assert client.get("/api/v1/attendance/summary?employee_id=E001&from=2025-01-10&to=2025-01-06").status_code == 422
    assert client.get("/api/v1/attendance/summary?employee_id=E001&from=06/01/2025&to=2025-01-10").status_code == 422


def test_calendar_endpoints(client, app):
    db.session.add(HolidayRule(name="Company Day", kind="FIXED", month=1, day=7, category="COMPANY", active=True))
    db.session.commit()

    r = client.get("/api/v1/attendance/calendar/working-days?from=2025-01-06&to=2025-01-12")
    data = r.get_json()["data"]
    assert data["working_days"] == 4
    assert data["holidays"] == [{"date": "2025-01-07", "name": "Company Day", "category": "COMPANY"}]

    r = client.get("/api/v1/attendance/calendar/is-working-day?date=2025-01-07")
    data = r.get_json()["data"]
    assert data["is_working_day"] is False
    assert data["holiday"]["name"] == "Company Day"


def test_day_records_list_and_soft_delete(client, people):
    client.post("/api/v1/attendance/import", json={"rows": _rows()})

    r = client.get("/api/v1/attendance/day-records?employee_id=E001&from=2025-01-01&to=2025-01-31")
    items = r.get_json()["data"]
    assert len(items) == 1
    rid = items[0]["id"]

    r = client.delete(f"/api/v1/attendance/day-records/{rid}")
    assert r.status_code == 200
    assert r.get_json()["data"]["deleted"] is True

    r = client.delete(f"/api/v1/attendance/day-records/{rid}")
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "ALREADY_DELETED"
    assert client.delete("/api/v1/attendance/day-records/9999").status_code == 404

    r = client.get("/api/v1/attendance/day-records?employee_id=E001&from=2025-01-01&to=2025-01-31")
    assert r.get_json()["data"] == []
    # the row is still there, only tombstoned
    assert db.session.get(DayRecord, rid).deleted is True
