import io
import math
from datetime import timedelta

import pytest

from src.center_attendance.center_attendance.main import create_app


@pytest.fixture
def client(world, monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(world.container)
    return app.test_client()


def student_headers(world):
    return {"X-User-Id": str(world.student_user.user_id), "X-User-Password": "student123"}


def admin_headers(world):
    return {"X-User-Id": str(world.admin.user_id), "X-User-Password": "admin123"}


def offset_lat(world, meters: float) -> float:
    return world.center.lat + math.degrees(meters / 6_371_000)


def test_login(client):
    res = client.post("/api/auth/login", json={"email": "asha@center.local", "password": "student123"})
    assert res.status_code == 200
    assert res.get_json()["user"]["role"] == "student"

    res = client.post("/api/auth/login", json={"email": "asha@center.local", "password": "bad"})
    assert res.status_code == 401
    assert res.get_json()["error"] == "INVALID_CREDENTIALS"


def test_register_then_use_headers(client, world):
    res = client.post(
        "/api/auth/register",
        json={"name": "Ravi", "email": "ravi@center.local", "password": "secret1", "centerCode": "MAIN"},
    )
    assert res.status_code == 201
    body = res.get_json()
    assert body["user"]["role"] == "student"

    res = client.get(
        "/api/student/geofence",
        headers={"X-User-Id": str(body["user"]["id"]), "X-User-Password": "secret1"},
    )
    assert res.status_code == 200
    assert res.get_json()["radiusMeters"] == 100.0


def test_missing_auth_headers(client):
    res = client.get("/api/student/geofence")
    assert res.status_code == 401


def test_student_cannot_use_admin_routes(client, world):
    res = client.get("/api/admin/stats", headers=student_headers(world))
    assert res.status_code == 403
    assert res.get_json()["error"] == "FORBIDDEN"


def test_student_check_in_and_out(client, world):
    headers = {**student_headers(world), "User-Agent": "phone", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"}

    res = client.post(
        "/api/student/attendance/check-in",
        json={"lat": offset_lat(world, 20), "lng": world.center.lng, "accuracy": 8, "deviceId": "phone-1"},
        headers=headers,
    )
    assert res.status_code == 201
    body = res.get_json()
    assert body["action"] == "CHECK_IN"
    assert body["record"]["ip_address"] == "203.0.113.9"
    assert body["record"]["device_id"] == "phone-1"

    res = client.post(
        "/api/student/attendance/check-in",
        json={"lat": offset_lat(world, 20), "lng": world.center.lng},
        headers=headers,
    )
    assert res.status_code == 409
    assert res.get_json()["error"] == "ALREADY_CHECKED_IN"

    res = client.post(
        "/api/student/attendance/check-out",
        json={"lat": offset_lat(world, 500), "lng": world.center.lng},
        headers=headers,
    )
    assert res.status_code == 403
    assert res.get_json()["error"] == "OUTSIDE_GEOFENCE"
    assert res.get_json()["radius_meters"] == 100.0

    res = client.post(
        "/api/student/attendance/check-out",
        json={"lat": offset_lat(world, 10), "lng": world.center.lng},
        headers=headers,
    )
    assert res.status_code == 200
    assert res.get_json()["record"]["is_open"] is False


def test_check_in_requires_coordinates(client, world):
    res = client.post("/api/student/attendance/check-in", json={}, headers=student_headers(world))
    assert res.status_code == 400
    assert res.get_json()["error"] == "INVALID_INPUT"


def test_history_and_calendar(client, world):
    world.container.attendance_service.scan(world.student.student_id)

    res = client.get("/api/student/attendance-history", headers=student_headers(world))
    assert res.status_code == 200
    assert len(res.get_json()["records"]) == 1

    res = client.get("/api/student/attendance/calendar?order=desc", headers=student_headers(world))
    body = res.get_json()
    assert res.status_code == 200
    assert len(body["days"]) == 30
    assert body["days"][0]["status"] == "present"
    assert body["presentDays"] == 1

    res = client.get("/api/student/attendance/calendar?from=2026-03-05&to=2026-03-01", headers=student_headers(world))
    assert res.status_code == 400


def test_admin_scan_by_badge_and_cooldown(client, world):
    res = client.post("/api/admin/scan", json={"badge": f"CA-STUDENT:{world.student.student_id}"}, headers=admin_headers(world))
    assert res.status_code == 200
    assert res.get_json()["action"] == "CHECK_IN"

    res = client.post("/api/admin/scan", json={"studentId": world.student.student_id}, headers=admin_headers(world))
    assert res.status_code == 429
    assert res.get_json()["error"] == "TOO_SOON"
    assert res.get_json()["retry_after_seconds"] >= 1


def test_admin_scan_requires_identifier(client, world):
    res = client.post("/api/admin/scan", json={}, headers=admin_headers(world))
    assert res.status_code == 400


def test_admin_edit_and_delete_record(client, world):
    record = world.container.attendance_service.scan(world.student.student_id).record
    url = f"/api/admin/attendance-records/{record.attendance_id}"

    res = client.patch(url, json={"action": "set_status", "status": "late"}, headers=admin_headers(world))
    assert res.status_code == 200
    assert res.get_json()["record"]["status"] == "late"

    res = client.patch(url, json={"action": "set_status", "status": "late"}, headers=admin_headers(world))
    assert res.status_code == 400
    assert res.get_json()["error"] == "NO_CHANGES"

    res = client.get("/api/admin/attendance-records?status=late", headers=admin_headers(world))
    assert [r["attendance_id"] for r in res.get_json()["records"]] == [record.attendance_id]

    assert client.delete(url, headers=admin_headers(world)).status_code == 200
    res = client.delete(url, headers=admin_headers(world))
    assert res.status_code == 404
    assert res.get_json()["error"] == "RECORD_NOT_FOUND"


def test_admin_stats_and_student_calendar(client, world):
    world.container.attendance_service.scan(world.student.student_id)

    res = client.get("/api/admin/stats", headers=admin_headers(world))
    assert res.get_json() == {"totalStudents": 1, "presentToday": 1, "attendanceRate": 100}

    res = client.get(f"/api/admin/students/{world.student.student_id}/calendar", headers=admin_headers(world))
    assert res.status_code == 200
    assert res.get_json()["studentId"] == world.student.student_id


def test_admin_badge_png(client, world):
    res = client.get(f"/api/admin/students/{world.student.student_id}/badge.png", headers=admin_headers(world))
    assert res.status_code == 200
    assert res.mimetype == "image/png"
    assert res.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_admin_students_crud_and_import(client, world):
    res = client.post(
        "/api/admin/students",
        json={"name": "Ravi", "email": "ravi@center.local", "password": "secret1", "centerId": 1},
        headers=admin_headers(world),
    )
    assert res.status_code == 201
    new_id = res.get_json()["student"]["studentId"]

    res = client.post(
        "/api/admin/students",
        json={"name": "Ravi", "email": "ravi@center.local", "password": "secret1", "centerId": 1},
        headers=admin_headers(world),
    )
    assert res.status_code == 409

    csv_bytes = b"name,email,password,centerCode\nMeera,meera@center.local,secret1,MAIN\n"
    res = client.post(
        "/api/admin/students/import",
        data={"file": (io.BytesIO(csv_bytes), "students.csv")},
        content_type="multipart/form-data",
        headers=admin_headers(world),
    )
    assert res.status_code == 200
    assert res.get_json()["summary"]["createdStudents"] == 1

    res = client.get("/api/admin/students", headers=admin_headers(world))
    assert [s["name"] for s in res.get_json()["students"]] == ["Asha", "Meera", "Ravi"]

    assert client.delete(f"/api/admin/students/{new_id}", headers=admin_headers(world)).status_code == 200
    assert client.delete(f"/api/admin/students/{new_id}", headers=admin_headers(world)).status_code == 404


def test_admin_centers(client, world):
    res = client.get("/api/admin/centers", headers=admin_headers(world))
    assert res.get_json()["centers"][0]["code"] == "MAIN"

    res = client.patch(
        "/api/admin/centers/1/location",
        json={"lat": 34.1, "lng": 74.8, "radiusMeters": -5},
        headers=admin_headers(world),
    )
    assert res.status_code == 400

    res = client.patch(
        "/api/admin/centers/1/location",
        json={"lat": 34.1, "lng": 74.8, "radiusMeters": 150},
        headers=admin_headers(world),
    )
    assert res.status_code == 200
    assert res.get_json()["center"]["radiusMeters"] == 150.0


def test_unknown_route_is_json(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "not_found"


def test_admin_scan_rejects_malformed_center_id(client, world):
    res = client.post(
        "/api/admin/scan",
        json={"studentId": world.student.student_id, "centerId": "abc"},
        headers=admin_headers(world),
    )
    assert res.status_code == 400
    assert res.get_json()["error"] == "INVALID_INPUT"
    assert res.get_json()["field"] == "centerId"
    assert world.attendance.records == {}


@pytest.mark.parametrize("limit", ["-1", "0"])
def test_history_limit_must_be_positive(client, world, fixed_now, limit):
    svc = world.container.attendance_service
    svc.scan(world.student.student_id, now=fixed_now)
    svc.scan(world.student.student_id, now=fixed_now + timedelta(hours=2))
    svc.scan(world.student.student_id, now=fixed_now + timedelta(hours=4))

    res = client.get(f"/api/student/attendance-history?limit={limit}", headers=student_headers(world))
    assert res.status_code == 400
    assert res.get_json()["field"] == "limit"

    res = client.get("/api/admin/attendance-records?limit=" + limit, headers=admin_headers(world))
    assert res.status_code == 400

    res = client.get("/api/student/attendance-history?limit=1", headers=student_headers(world))
    assert len(res.get_json()["records"]) == 1

    res = client.get("/api/student/attendance-history", headers=student_headers(world))
    assert len(res.get_json()["records"]) == 2
