import os
from datetime import time

import pytest

from attendance_api import create_app
from attendance_api.extensions import db
from attendance_api.models.attendance import Shift
from attendance_api.models.employee import Employee, ROLE_FLEXIBLE, ROLE_SHIFT


@pytest.fixture
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def people(app):
    """Day shift 08:00-16:00 (no grace), two shift-bound staff, one lecturer, one leaver."""
    day = Shift(code="DAY", name="Day", start_time=time(8, 0), end_time=time(16, 0), grace_minutes=0)
    db.session.add(day)
    db.session.flush()

    e1 = Employee(code="E001", device_user_id="101", name="Ani", role=ROLE_SHIFT, shift_id=day.id, active=True)
    e2 = Employee(code="E002", device_user_id="102", name="Budi", role=ROLE_SHIFT, shift_id=day.id, active=True)
    l1 = Employee(code="L001", device_user_id="201", name="Dr. Citra", role=ROLE_FLEXIBLE, active=True)
    gone = Employee(code="X999", device_user_id="999", name="Left", role=ROLE_SHIFT, shift_id=day.id, active=False)
    db.session.add_all([e1, e2, l1, gone])
    db.session.commit()
    return {"shift": day, "E001": e1, "E002": e2, "L001": l1, "X999": gone}
