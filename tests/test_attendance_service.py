from datetime import date, datetime, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from hrportal.models.attendance import AttendanceRecord
from hrportal.services.attendance_service import (
    AttendanceReconciler,
    AttendanceState,
    format_hms,
    get_local_date,
)


def at(hour, minute=0, day=4):
    return datetime(2024, 3, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def reconciler():
    return AttendanceReconciler()


@pytest.fixture
def employee(make_user):
    return make_user("employee")


def _records(db_session, user_id):
    db_session.expire_all()
    return db_session.query(AttendanceRecord).filter(AttendanceRecord.user_id == user_id).all()


def test_load_today_without_record_is_ready_to_punch_in(reconciler, employee, db_session):
    state = reconciler.load_today(employee.id, db_session, now=at(8))

    assert state.date == date(2024, 3, 4)
    assert state.record_id is None
    assert not state.is_live
    assert state.accumulated_seconds == 0
    assert state.button_text == "Punch In"
    assert state.status_label == "Not Punched In"


def test_full_day_of_toggles(reconciler, employee, db_session):
    first = reconciler.toggle(employee.id, db_session, now=at(9))
    assert first.is_live
    assert first.accumulated_seconds == 0
    assert first.punch_in_time == at(9)

    second = reconciler.toggle(employee.id, db_session, now=at(13))
    assert not second.is_live
    assert second.accumulated_seconds == 14400

    third = reconciler.toggle(employee.id, db_session, now=at(13, 30))
    assert third.is_live
    assert third.accumulated_seconds == 14400
    assert third.punch_in_time == at(13, 30)
    assert third.first_punch_in == at(9)

    fourth = reconciler.toggle(employee.id, db_session, now=at(14))
    assert not fourth.is_live
    assert fourth.accumulated_seconds == 16200

    records = _records(db_session, employee.id)
    assert len(records) == 1
    assert records[0].total_seconds == 16200
    assert records[0].punch_out.replace(tzinfo=timezone.utc) == at(14)
    assert records[0].status == "Present"


def test_reload_after_reopen_keeps_live_session(reconciler, employee, db_session):
    reconciler.toggle(employee.id, db_session, now=at(9))
    reconciler.toggle(employee.id, db_session, now=at(13))
    reconciler.toggle(employee.id, db_session, now=at(13, 30))

    state = reconciler.load_today(employee.id, db_session, now=at(13, 45))

    assert state.is_live
    assert state.punch_in_time == at(13, 30)
    assert state.current_total(at(13, 45)) == 14400 + 900


def test_toggle_in_flight_is_rejected_without_write(reconciler, employee, db_session):
    assert reconciler._begin(employee.id)

    with pytest.raises(HTTPException) as exc:
        reconciler.toggle(employee.id, db_session, now=at(9))

    assert exc.value.status_code == 409
    assert _records(db_session, employee.id) == []
    assert reconciler.is_in_flight(employee.id)


def test_toggle_releases_in_flight_marker(reconciler, employee, db_session):
    reconciler.toggle(employee.id, db_session, now=at(9))
    assert not reconciler.is_in_flight(employee.id)


def test_stale_session_is_closed_at_end_of_its_day(reconciler, employee, db_session):
    db_session.add(AttendanceRecord(
        user_id=employee.id,
        date=date(2024, 3, 3),
        punch_in=datetime(2024, 3, 3, 20, 0, tzinfo=timezone.utc),
        first_punch_in=datetime(2024, 3, 3, 20, 0, tzinfo=timezone.utc),
        total_seconds=600,
        status="Present",
    ))
    db_session.commit()

    state = reconciler.load_today(employee.id, db_session, now=at(9))

    assert state.record_id is None
    stale = _records(db_session, employee.id)[0]
    assert stale.punch_out.replace(tzinfo=timezone.utc) == datetime(2024, 3, 4, tzinfo=timezone.utc)
    assert stale.total_seconds == 600 + 4 * 3600


def test_commit_failure_rolls_back_and_reports(reconciler, employee, db_session, monkeypatch):
    def failing_commit():
        raise OperationalError("UPDATE attendance", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(HTTPException) as exc:
        reconciler.toggle(employee.id, db_session, now=at(9))

    assert exc.value.status_code == 503
    assert not reconciler.is_in_flight(employee.id)
    monkeypatch.undo()
    assert _records(db_session, employee.id) == []


def test_punch_out_before_punch_in_never_goes_negative(reconciler, employee, db_session):
    reconciler.toggle(employee.id, db_session, now=at(9))
    state = reconciler.toggle(employee.id, db_session, now=at(8, 59))

    assert state.accumulated_seconds == 0


def test_current_total_and_progress():
    state = AttendanceState(
        date=date(2024, 3, 4),
        punch_in_time=at(10),
        accumulated_seconds=3600,
    )

    assert state.current_total(at(11)) == 7200
    assert state.progress_percent(at(11)) == 25.0
    assert state.snapshot(at(11))["total_hms"] == "02:00:00"
    assert state.button_text == "Punch Out"
    assert state.status_label == "Punch In at 10:00 AM"


def test_closed_state_total_is_frozen():
    state = AttendanceState(date=date(2024, 3, 4), accumulated_seconds=16200)

    assert state.current_total(at(23)) == 16200
    assert state.status_label == "Punched Out"


def test_progress_caps_at_full_day():
    state = AttendanceState(date=date(2024, 3, 4), accumulated_seconds=10 * 3600)
    assert state.progress_percent(at(20)) == 100.0


def test_format_hms():
    assert format_hms(0) == "00:00:00"
    assert format_hms(16200) == "04:30:00"
    assert format_hms(-5) == "00:00:00"


def test_local_date_uses_configured_offset(monkeypatch):
    from hrportal.config import settings

    monkeypatch.setattr(settings, "ATTENDANCE_UTC_OFFSET_MINUTES", 330)
    assert get_local_date(datetime(2024, 3, 4, 20, 0, tzinfo=timezone.utc)) == date(2024, 3, 5)
