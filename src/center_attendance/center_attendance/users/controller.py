from __future__ import annotations

from flask import Flask, jsonify, request

from ..common.http import json_body, make_guards, query_int
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    _, admin_required = make_guards(container.auth_service)

    @app.route("/api/auth/login", methods=["POST"], endpoint="login")
    def login():
        body = json_body()
        user = container.auth_service.authenticate(body.get("email", ""), body.get("password", ""))
        return jsonify({"user": user.to_dict()})

    @app.route("/api/auth/register", methods=["POST"], endpoint="register")
    def register_student():
        body = json_body()
        user, student = container.user_service.register(
            name=body.get("name", ""),
            email=body.get("email", ""),
            password=body.get("password", ""),
            center_id=body.get("centerId"),
            center_code=body.get("centerCode"),
            grade=body.get("grade"),
            roll_number=body.get("rollNumber"),
        )
        session_user = container.auth_service.authenticate(user.email, body.get("password", ""))
        return jsonify({"user": session_user.to_dict(), "student": student.to_dict()}), 201

    @app.route("/api/admin/students", methods=["GET"], endpoint="admin_students")
    @admin_required
    def admin_students():
        profiles = container.user_service.list_students(center_id=query_int("centerId"))
        return jsonify({"students": [p.to_dict() for p in profiles]})

    @app.route("/api/admin/students", methods=["POST"], endpoint="admin_add_student")
    @admin_required
    def admin_add_student():
        body = json_body()
        user, student = container.user_service.create_student(
            name=body.get("name", ""),
            email=body.get("email", ""),
            password=body.get("password", ""),
            center_id=body.get("centerId"),
            grade=body.get("grade"),
            roll_number=body.get("rollNumber"),
            student_phone=body.get("studentPhone"),
            parent_phone=body.get("parentPhone"),
        )
        return jsonify({"ok": True, "userId": user.user_id, "student": student.to_dict()}), 201

    @app.route("/api/admin/students/<int:student_id>", methods=["DELETE"], endpoint="admin_delete_student")
    @admin_required
    def admin_delete_student(student_id: int):
        container.user_service.delete_student(student_id)
        return jsonify({"ok": True})

    @app.route("/api/admin/students/import", methods=["POST"], endpoint="admin_import_students")
    @admin_required
    def admin_import_students():
        upload = request.files.get("file")
        if upload is not None:
            csv_text = upload.read().decode("utf-8-sig", errors="replace")
        else:
            csv_text = request.get_data(as_text=True)
        if not csv_text.strip():
            raise ValidationError("CSV file is required", field="file")

        summary = container.user_service.import_students(csv_text)
        return jsonify({"ok": True, **summary.to_dict()})
