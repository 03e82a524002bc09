from __future__ import annotations

from flask import Flask, jsonify

from ..common.http import json_body, make_guards
from ..container import Container


def register(app: Flask, container: Container) -> None:
    _, admin_required = make_guards(container.auth_service)

    @app.route("/api/admin/centers", methods=["GET"], endpoint="admin_centers")
    @admin_required
    def admin_centers():
        return jsonify({"centers": [c.to_dict() for c in container.center_service.list_centers()]})

    @app.route("/api/admin/centers/<int:center_id>/location", methods=["PATCH"], endpoint="admin_center_location")
    @admin_required
    def admin_center_location(center_id: int):
        body = json_body()
        center = container.center_service.update_location(
            center_id,
            lat=body.get("lat"),
            lng=body.get("lng"),
            radius_meters=body.get("radiusMeters"),
        )
        return jsonify({"ok": True, "center": center.to_dict()})
