from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from ...centers.model import Center
from ...common.geo import GeoPoint, distance_meters
from ...core.enums import AdmissionAction, ErrorCode, Flow, Intent
from ...core.exceptions import AdmissionRejected, ValidationError
from ...users.model import Student
from ..model import AttendanceRecord, ClientAudit, NewAttendanceRecord
from .base import AdmissionDecision, AdmissionPolicy, DaySnapshot


class GeofencePolicy(AdmissionPolicy):
    """Self-service check-in/out: one check-in per day, coordinate must be inside the center radius."""

    flow = Flow.GEOFENCE

    def decide(
        self,
        *,
        intent: Intent,
        snapshot: DaySnapshot,
        center: Center,
        position: Optional[GeoPoint],
    ) -> AdmissionDecision:
        if intent not in (Intent.CHECK_IN, Intent.CHECK_OUT):
            raise ValidationError(f"Geofenced flow does not support {intent.value}")
        if position is None:
            raise ValidationError("lat/lng are required", field="lat")

        if not center.has_geofence:
            raise AdmissionRejected(
                "Center geofence is not configured",
                code=ErrorCode.GEOFENCE_NOT_CONFIGURED,
                center_id=center.center_id,
            )

        if intent == Intent.CHECK_IN:
            if snapshot.sessions_count > 0:
                raise AdmissionRejected(
                    "You have already marked attendance for today.",
                    code=ErrorCode.ALREADY_CHECKED_IN,
                )
            action = AdmissionAction.CHECK_IN
        else:
            if snapshot.open_session is None:
                raise AdmissionRejected(
                    "No open attendance record found for today.",
                    code=ErrorCode.NO_OPEN_SESSION,
                )
            action = AdmissionAction.CHECK_OUT

        distance = distance_meters(float(center.lat), float(center.lng), position.lat, position.lng)
        radius = float(center.radius_meters)
        if distance > radius:
            raise AdmissionRejected(
                "Outside the center geofence",
                code=ErrorCode.OUTSIDE_GEOFENCE,
                distance_meters=distance,
                radius_meters=radius,
                allowed=False,
            )
        return AdmissionDecision(action=action, distance_meters=distance)

    def build_check_in(
        self,
        *,
        snapshot: DaySnapshot,
        student: Student,
        center: Center,
        decision: AdmissionDecision,
        position: Optional[GeoPoint],
        audit: ClientAudit,
    ) -> NewAttendanceRecord:
        base = super().build_check_in(
            snapshot=snapshot, student=student, center=center, decision=decision, position=position, audit=audit
        )
        return replace(
            base,
            check_in_lat=position.lat,
            check_in_lng=position.lng,
            check_in_accuracy=position.accuracy,
            distance_from_center_meters=decision.distance_meters,
        )

    def build_check_out(
        self,
        *,
        snapshot: DaySnapshot,
        record: AttendanceRecord,
        decision: AdmissionDecision,
        position: Optional[GeoPoint],
        audit: ClientAudit,
    ) -> dict[str, Any]:
        # The checkout request's own device data wins here.
        return {
            "check_out_at": snapshot.now,
            "check_out_lat": position.lat,
            "check_out_lng": position.lng,
            "check_out_accuracy": position.accuracy,
            "distance_from_center_checkout_meters": decision.distance_meters,
            "device_id": audit.device_id or record.device_id,
            "ip_address": audit.ip_address or record.ip_address,
            "user_agent": audit.user_agent or record.user_agent,
        }
