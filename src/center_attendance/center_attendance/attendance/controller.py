from __future__ import annotations

import io

from flask import Flask, jsonify, request, send_file

from ..common.geo import GeoPoint
from ..common.http import (
    client_audit,
    current_user,
    json_body,
    make_guards,
    query_date,
    query_int,
    query_text,
)
from ..common.validators import require_int
from ..core.constants import DEFAULT_ADMIN_LIST_LIMIT, DEFAULT_HISTORY_LIMIT
from ..core.exceptions import ValidationError
from ..container import Container
from .badges import decode_badge_image, parse_badge, render_badge_png


def register(app: Flask, container: Container) -> None:
    student_required, admin_required = make_guards(container.auth_service)

    def _my_student_id() -> int:
        user = current_user()
        if user.student_id is not None:
            return user.student_id
        return container.user_service.require_student_for_user(user.user_id).student_id

    def _position(body: dict) -> GeoPoint:
        if body.get("lat") is None or body.get("lng") is None:
            raise ValidationError("lat and lng are required", field="lat")
        return GeoPoint.parse(body.get("lat"), body.get("lng"), body.get("accuracy"))

    def _calendar_range():
        default_start, default_end = container.report_service.default_range()
        start = query_date("from", default_start)
        end = query_date("to", default_end)
        newest_first = (request.args.get("order") or "asc").lower() == "desc"
        return start, end, newest_first

    # ----- student -----

    @app.route("/api/student/attendance/check-in", methods=["POST"], endpoint="student_check_in")
    @student_required
    def student_check_in():
        body = json_body()
        result = container.attendance_service.check_in(
            _my_student_id(), _position(body), audit=client_audit(body)
        )
        return jsonify(result.to_dict()), 201

    @app.route("/api/student/attendance/check-out", methods=["POST"], endpoint="student_check_out")
    @student_required
    def student_check_out():
        body = json_body()
        result = container.attendance_service.check_out(
            _my_student_id(), _position(body), audit=client_audit(body)
        )
        return jsonify(result.to_dict())

    @app.route("/api/student/geofence", methods=["GET"], endpoint="student_geofence")
    @student_required
    def student_geofence():
        return jsonify(container.attendance_service.get_geofence(_my_student_id()).to_dict())

    @app.route("/api/student/attendance/today", methods=["GET"], endpoint="student_today")
    @student_required
    def student_today():
        return jsonify(container.attendance_service.get_today(_my_student_id()).to_dict())

    @app.route("/api/student/attendance-history", methods=["GET"], endpoint="student_history")
    @student_required
    def student_history():
        limit = query_int("limit", DEFAULT_HISTORY_LIMIT, min_value=1)
        records = container.attendance_service.get_history(_my_student_id(), limit=limit)
        return jsonify({"records": [r.to_dict() for r in records]})

    @app.route("/api/student/attendance/calendar", methods=["GET"], endpoint="student_calendar")
    @student_required
    def student_calendar():
        start, end, newest_first = _calendar_range()
        calendar = container.report_service.build_student_calendar(
            _my_student_id(), start=start, end=end, newest_first=newest_first
        )
        return jsonify(calendar.to_dict())

    # ----- admin -----

    @app.route("/api/admin/scan", methods=["POST"], endpoint="admin_scan")
    @admin_required
    def admin_scan():
        """Toggle a student's session from a student id, a badge string or an uploaded badge photo."""

        upload = request.files.get("file")
        body = json_body() if request.is_json else request.form.to_dict()

        if upload is not None:
            student_id = decode_badge_image(upload.read())
        elif body.get("badge"):
            student_id = parse_badge(body["badge"])
        elif body.get("studentId") not in (None, ""):
            student_id = parse_badge(body["studentId"])
        else:
            raise ValidationError("studentId, badge or file is required", field="studentId")

        center_id = body.get("centerId")
        result = container.attendance_service.scan(
            student_id,
            center_id=require_int(center_id, "centerId") if center_id not in (None, "") else None,
            audit=client_audit(body),
        )
        return jsonify(result.to_dict())

    @app.route("/api/admin/stats", methods=["GET"], endpoint="admin_stats")
    @admin_required
    def admin_stats():
        return jsonify(container.report_service.admin_stats().to_dict())

    @app.route("/api/admin/attendance-records", methods=["GET"], endpoint="admin_records")
    @admin_required
    def admin_records():
        default_start, default_end = container.report_service.default_range()
        rows = container.report_service.list_records(
            start=query_date("dateFrom", default_start),
            end=query_date("dateTo", default_end),
            center_id=query_int("centerId", min_value=1),
            status=query_text("status"),
            grade=query_text("grade"),
            limit=query_int("limit", DEFAULT_ADMIN_LIST_LIMIT, min_value=1),
        )
        return jsonify({"records": [r.to_dict() for r in rows]})

    @app.route("/api/admin/attendance-records/<int:record_id>", methods=["PATCH"], endpoint="admin_edit_record")
    @admin_required
    def admin_edit_record(record_id: int):
        body = json_body()
        record = container.attendance_editor.apply(record_id, body.get("action"), body)
        return jsonify({"ok": True, "record": record.to_dict()})

    @app.route("/api/admin/attendance-records/<int:record_id>", methods=["DELETE"], endpoint="admin_delete_record")
    @admin_required
    def admin_delete_record(record_id: int):
        container.attendance_editor.delete(record_id)
        return jsonify({"ok": True})

    @app.route("/api/admin/students/<int:student_id>/calendar", methods=["GET"], endpoint="admin_student_calendar")
    @admin_required
    def admin_student_calendar(student_id: int):
        start, end, newest_first = _calendar_range()
        calendar = container.report_service.build_student_calendar(
            student_id, start=start, end=end, newest_first=newest_first
        )
        return jsonify(calendar.to_dict())

    @app.route("/api/admin/students/<int:student_id>/badge.png", methods=["GET"], endpoint="admin_student_badge")
    @admin_required
    def admin_student_badge(student_id: int):
        student = container.user_service.get_student(student_id)
        png = render_badge_png(student.student_id)
        return send_file(
            io.BytesIO(png),
            mimetype="image/png",
            download_name=f"badge_{student.student_id}.png",
        )
