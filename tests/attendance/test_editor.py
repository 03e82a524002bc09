from datetime import timedelta

import pytest

from src.center_attendance.center_attendance.attendance.editor import UNSET
from src.center_attendance.center_attendance.centers.model import Center
from src.center_attendance.center_attendance.core.enums import ErrorCode
from src.center_attendance.center_attendance.core.exceptions import EditRejected, NotFoundError, ValidationError


@pytest.fixture
def closed_record(world, fixed_now):
    svc = world.container.attendance_service
    svc.scan(world.student.student_id, now=fixed_now)
    return svc.scan(world.student.student_id, now=fixed_now + timedelta(hours=2)).record


@pytest.fixture
def editor(world):
    return world.container.attendance_editor


def test_set_status_normalizes_case(editor, world, closed_record):
    edited = editor.set_status(closed_record.attendance_id, "  LATE ")
    assert edited.status == "late"
    assert world.attendance.find_by_id(closed_record.attendance_id).status == "late"


def test_set_status_rejects_unknown_value(editor, closed_record):
    with pytest.raises(ValidationError) as exc:
        editor.set_status(closed_record.attendance_id, "on_leave")
    assert "allowed" in exc.value.details


def test_same_status_is_no_change(editor, closed_record):
    with pytest.raises(EditRejected) as exc:
        editor.set_status(closed_record.attendance_id, "present")
    assert exc.value.code == ErrorCode.NO_CHANGES


def test_set_times_checkout_before_checkin_leaves_record_unchanged(editor, world, closed_record):
    before = world.attendance.find_by_id(closed_record.attendance_id)

    with pytest.raises(EditRejected) as exc:
        editor.set_times(closed_record.attendance_id, check_out_at=closed_record.check_in_at - timedelta(minutes=1))

    assert exc.value.code == ErrorCode.CHECKOUT_BEFORE_CHECKIN
    assert world.attendance.find_by_id(closed_record.attendance_id) == before


def test_force_checkout_before_checkin_is_rejected(editor, world, fixed_now):
    opened = world.container.attendance_service.scan(world.student.student_id, now=fixed_now).record

    with pytest.raises(EditRejected) as exc:
        editor.force_checkout(opened.attendance_id, fixed_now - timedelta(hours=1))

    assert exc.value.code == ErrorCode.CHECKOUT_BEFORE_CHECKIN
    assert world.attendance.find_by_id(opened.attendance_id).is_open


def test_force_checkout_defaults_to_now(editor, world, fixed_now):
    opened = world.container.attendance_service.scan(world.student.student_id, now=fixed_now).record
    edited = editor.force_checkout(opened.attendance_id, now=fixed_now + timedelta(hours=4))
    assert edited.check_out_at == fixed_now + timedelta(hours=4)


def test_reopen_clears_checkout_telemetry(editor, world, closed_record):
    edited = editor.reopen_session(closed_record.attendance_id)

    assert edited.is_open
    assert edited.check_out_lat is None
    assert edited.distance_from_center_checkout_meters is None
    assert world.attendance.find_by_id(closed_record.attendance_id).is_open


def test_reopen_rejected_when_another_session_is_open(editor, world, fixed_now, closed_record):
    world.container.attendance_service.scan(world.student.student_id, now=fixed_now + timedelta(hours=3))

    with pytest.raises(EditRejected) as exc:
        editor.reopen_session(closed_record.attendance_id)

    assert exc.value.code == ErrorCode.OPEN_SESSION_EXISTS
    assert not world.attendance.find_by_id(closed_record.attendance_id).is_open


def test_set_times_moves_work_date(editor, closed_record):
    new_in = closed_record.check_in_at - timedelta(days=1)
    edited = editor.set_times(closed_record.attendance_id, check_in_at=new_in)

    assert edited.check_in_at == new_in
    assert edited.work_date.isoformat() == "2026-03-09"
    assert edited.check_out_at == closed_record.check_out_at


def test_set_times_clear_checkout_and_refuse_clearing_checkin(editor, closed_record):
    with pytest.raises(ValidationError):
        editor.set_times(closed_record.attendance_id, check_in_at=None)

    edited = editor.set_times(closed_record.attendance_id, check_in_at=UNSET, check_out_at=None)
    assert edited.is_open


def test_set_center_requires_existing_center(editor, world, closed_record):
    with pytest.raises(NotFoundError) as exc:
        editor.set_center(closed_record.attendance_id, 77)
    assert exc.value.code == ErrorCode.CENTER_NOT_FOUND

    world.centers.add(Center(center_id=2, name="Annex", code="ANX", lat=None, lng=None, radius_meters=None))
    assert editor.set_center(closed_record.attendance_id, 2).center_id == 2


def test_set_checkin_location_recomputes_distance(editor, world, closed_record):
    edited = editor.set_checkin_location(closed_record.attendance_id, world.center.lat, world.center.lng, 4)

    assert edited.check_in_lat == world.center.lat
    assert edited.check_in_accuracy == 4
    assert edited.distance_from_center_meters == pytest.approx(0.0)


def test_delete_and_missing_record(editor, world, closed_record):
    editor.delete(closed_record.attendance_id)
    assert world.attendance.find_by_id(closed_record.attendance_id) is None

    with pytest.raises(NotFoundError) as exc:
        editor.delete(closed_record.attendance_id)
    assert exc.value.code == ErrorCode.RECORD_NOT_FOUND

    with pytest.raises(NotFoundError):
        editor.set_status(closed_record.attendance_id, "late")


def test_apply_dispatches_named_actions(editor, closed_record):
    assert editor.apply(closed_record.attendance_id, "set_status", {"status": "absent"}).status == "absent"

    edited = editor.apply(
        closed_record.attendance_id,
        "set_times",
        {"checkInAt": "2026-03-10T08:00:00", "checkOutAt": "2026-03-10T04:00:00Z"},
    )
    # 08:00 IST is 02:30 UTC
    assert edited.check_in_at.isoformat() == "2026-03-10T02:30:00+00:00"
    assert edited.check_out_at.isoformat() == "2026-03-10T04:00:00+00:00"


def test_apply_unknown_action(editor, closed_record):
    with pytest.raises(ValidationError) as exc:
        editor.apply(closed_record.attendance_id, "merge", {})
    assert exc.value.details["field"] == "action"


def test_edit_uses_record_state_at_write_time(editor, world, fixed_now, monkeypatch):
    svc = world.container.attendance_service
    opened = svc.scan(world.student.student_id, now=fixed_now).record
    original_find = world.attendance.find_by_id
    closed_meanwhile = []
    calls = []

    def find_then_close(record_id):
        record = original_find(record_id)
        if not calls:
            calls.append(record_id)
            closed_meanwhile.append(svc.scan(world.student.student_id, now=fixed_now + timedelta(hours=1)).record)
        return record

    monkeypatch.setattr(world.attendance, "find_by_id", find_then_close)

    edited = editor.set_status(opened.attendance_id, "late")

    assert closed_meanwhile[0].check_out_at == fixed_now + timedelta(hours=1)
    assert edited.check_out_at == fixed_now + timedelta(hours=1)
    assert not edited.is_open
    stored = original_find(opened.attendance_id)
    assert (stored.status, stored.check_out_at) == ("late", fixed_now + timedelta(hours=1))
