from attendance_api.services.format_detector import FormatKind, detect, detect_kind


def test_device_export_full_headers():
    rows = [{
        "NIK": "E001", "Nama": "Ani", "Tipe Absensi": "Masuk",
        "Tanggal Absensi": "2025-01-06", "Waktu Absensi": "08:05", "Verifikasi": "Sidik Jari",
        "Cloud ID": "GZ-01",
    }]
    fmt = detect(rows)
    assert fmt.kind is FormatKind.DEVICE_EXPORT
    assert fmt.columns["date"] == "Tanggal Absensi"
    assert fmt.columns["time"] == "Waktu Absensi"
    assert fmt.value(rows[0], "employee_id") == "E001"


def test_device_export_abbreviated_headers():
    rows = [{"NIK": "E001", "Tipe Absen": "Pulang", "Tanggal Ab": "06/01/2025", "Waktu Abs": "17:00"}]
    fmt = detect(rows)
    assert fmt.kind is FormatKind.DEVICE_EXPORT
    assert fmt.columns["punch_type"] == "Tipe Absen"
    assert fmt.value(rows[0], "time") == "17:00"


def test_template_requires_all_minimal_columns():
    rows = [{"employeeId": "E001", "date": "2025-01-06", "checkIn": "08:00", "checkOut": "16:00"}]
    fmt = detect(rows)
    assert fmt.kind is FormatKind.TEMPLATE
    assert fmt.columns["check_out"] == "checkOut"

    # checkIn missing -> not a template
    assert detect_kind([{"employeeId": "E001", "date": "2025-01-06"}]) is FormatKind.UNKNOWN


def test_headers_are_matched_case_and_space_insensitively():
    rows = [{" EmployeeId ": "E001", "DATE": "2025-01-06", "checkin": "08:00"}]
    assert detect_kind(rows) is FormatKind.TEMPLATE


def test_only_first_row_is_inspected():
    rows = [
        {"foo": 1, "bar": 2},
        {"employeeId": "E001", "date": "2025-01-06", "checkIn": "08:00"},
    ]
    assert detect_kind(rows) is FormatKind.UNKNOWN


def test_empty_batch_is_unknown():
    fmt = detect([])
    assert fmt.kind is FormatKind.UNKNOWN
    assert not fmt.is_known
