from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import replace
from datetime import datetime
from typing import Any, Mapping, Optional

from ..centers.repository import CenterRepository
from ..common.datetime_utils import TimeWindowProvider, ensure_aware, now_utc, parse_iso_datetime
from ..common.geo import GeoPoint, distance_meters
from ..common.validators import require_int, require_non_empty
from ..core.enums import AttendanceStatus, EditAction, ErrorCode
from ..core.exceptions import EditRejected, NotFoundError, ValidationError
from .locks import KeyedLocks
from .model import CHECKOUT_FIELDS, AttendanceRecord
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def _day_key(record: AttendanceRecord) -> tuple:
    return (record.student_id, record.center_id, record.work_date)


class AttendanceEditor:
    """Admin record editor: one named action, one record, one write."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        centers: CenterRepository,
        *,
        clock: TimeWindowProvider | None = None,
        locks: KeyedLocks | None = None,
    ):
        self._attendance = attendance
        self._centers = centers
        self._clock = clock or TimeWindowProvider()
        self._locks = locks or KeyedLocks()

    def _get(self, record_id: Any) -> AttendanceRecord:
        rid = require_int(record_id, "record_id")
        record = self._attendance.find_by_id(rid)
        if not record:
            raise NotFoundError("Attendance record not found", code=ErrorCode.RECORD_NOT_FOUND, record_id=rid)
        return record

    def _ensure_single_open(self, result: AttendanceRecord) -> None:
        window = self._clock.window_for_day(result.work_date)
        other = self._attendance.find_open_session(result.student_id, result.center_id, window.start, window.end)
        if other and other.attendance_id != result.attendance_id:
            raise EditRejected(
                "Another session is already open for that day",
                code=ErrorCode.OPEN_SESSION_EXISTS,
                open_record_id=other.attendance_id,
            )

    def _commit(self, record: AttendanceRecord, changes: Mapping[str, Any], action: EditAction) -> AttendanceRecord:
        keys = {_day_key(record), _day_key(replace(record, **changes))}
        with ExitStack() as stack:
            for key in sorted(keys):
                stack.enter_context(self._locks.hold(key))

            current = self._get(record.attendance_id)
            effective = {k: v for k, v in changes.items() if getattr(current, k) != v}
            if not effective:
                raise EditRejected("Nothing to change", code=ErrorCode.NO_CHANGES)

            result = replace(current, **effective)
            if result.check_out_at is not None and result.check_out_at < result.check_in_at:
                raise EditRejected(
                    "Check-out cannot be before check-in",
                    code=ErrorCode.CHECKOUT_BEFORE_CHECKIN,
                    check_in_at=result.check_in_at.isoformat(),
                    check_out_at=result.check_out_at.isoformat(),
                )

            if result.is_open:
                self._ensure_single_open(result)
            if not self._attendance.update_by_id(record.attendance_id, effective):
                raise NotFoundError(
                    "Attendance record not found",
                    code=ErrorCode.RECORD_NOT_FOUND,
                    record_id=record.attendance_id,
                )

        logger.info("record %s edited via %s (%s)", record.attendance_id, action.value, ", ".join(sorted(effective)))
        return result

    def set_status(self, record_id: Any, status: Any) -> AttendanceRecord:
        value = require_non_empty(None if status is None else str(status), "status").lower()
        try:
            value = AttendanceStatus(value).value
        except ValueError:
            raise ValidationError(
                f"Unknown status: {value!r}",
                field="status",
                allowed=[s.value for s in AttendanceStatus],
            )
        record = self._get(record_id)
        return self._commit(record, {"status": value}, EditAction.SET_STATUS)

    def force_checkout(
        self, record_id: Any, check_out_at: Optional[datetime] = None, *, now: Optional[datetime] = None
    ) -> AttendanceRecord:
        record = self._get(record_id)
        when = ensure_aware(check_out_at) if check_out_at else (ensure_aware(now) if now else now_utc())
        return self._commit(record, {"check_out_at": when}, EditAction.FORCE_CHECKOUT)

    def reopen_session(self, record_id: Any) -> AttendanceRecord:
        record = self._get(record_id)
        return self._commit(record, {name: None for name in CHECKOUT_FIELDS}, EditAction.REOPEN_SESSION)

    def set_times(self, record_id: Any, check_in_at: Any = UNSET, check_out_at: Any = UNSET) -> AttendanceRecord:
        """Omitted arguments stay as they are; ``check_out_at=None`` clears the checkout."""

        if check_in_at is None:
            raise ValidationError("check_in_at cannot be cleared", field="check_in_at")

        record = self._get(record_id)
        changes: dict[str, Any] = {}
        if check_in_at is not UNSET:
            changes["check_in_at"] = ensure_aware(check_in_at)
            changes["work_date"] = self._clock.day_key(changes["check_in_at"])
        if check_out_at is not UNSET:
            changes["check_out_at"] = ensure_aware(check_out_at) if check_out_at is not None else None
        return self._commit(record, changes, EditAction.SET_TIMES)

    def set_center(self, record_id: Any, center_id: Any) -> AttendanceRecord:
        cid = require_int(center_id, "center_id")
        record = self._get(record_id)
        if not self._centers.get_by_id(cid):
            raise NotFoundError("Center not found", code=ErrorCode.CENTER_NOT_FOUND, center_id=cid)
        return self._commit(record, {"center_id": cid}, EditAction.SET_CENTER)

    def set_checkin_location(self, record_id: Any, lat: Any, lng: Any, accuracy: Any = None) -> AttendanceRecord:
        point = GeoPoint.parse(lat, lng, accuracy)
        record = self._get(record_id)

        changes: dict[str, Any] = {
            "check_in_lat": point.lat,
            "check_in_lng": point.lng,
            "check_in_accuracy": point.accuracy,
        }
        center = self._centers.get_by_id(record.center_id)
        if center and center.has_geofence:
            changes["distance_from_center_meters"] = distance_meters(
                float(center.lat), float(center.lng), point.lat, point.lng
            )
        return self._commit(record, changes, EditAction.SET_CHECKIN_LOCATION)

    def delete(self, record_id: Any) -> None:
        rid = require_int(record_id, "record_id")
        if not self._attendance.delete_by_id(rid):
            raise NotFoundError("Attendance record not found", code=ErrorCode.RECORD_NOT_FOUND, record_id=rid)
        logger.info("record %s deleted", rid)

    def apply(
        self, record_id: Any, action: Any, payload: Optional[Mapping[str, Any]] = None, *, now: Optional[datetime] = None
    ) -> AttendanceRecord:
        """Dispatch a named action with a JSON-ish payload (timestamps as ISO strings)."""

        payload = payload or {}
        try:
            edit = EditAction(str(action or "").strip())
        except ValueError:
            raise ValidationError(
                f"Unknown action: {action!r}",
                field="action",
                allowed=[a.value for a in EditAction],
            )

        if edit == EditAction.SET_STATUS:
            return self.set_status(record_id, payload.get("status"))
        if edit == EditAction.FORCE_CHECKOUT:
            raw = payload.get("checkOutAt")
            return self.force_checkout(record_id, self._parse_instant(raw) if raw else None, now=now)
        if edit == EditAction.REOPEN_SESSION:
            return self.reopen_session(record_id)
        if edit == EditAction.SET_TIMES:
            check_in = UNSET
            check_out = UNSET
            if "checkInAt" in payload:
                check_in = self._parse_instant(payload["checkInAt"]) if payload["checkInAt"] is not None else None
            if "checkOutAt" in payload:
                check_out = self._parse_instant(payload["checkOutAt"]) if payload["checkOutAt"] is not None else None
            return self.set_times(record_id, check_in_at=check_in, check_out_at=check_out)
        if edit == EditAction.SET_CENTER:
            return self.set_center(record_id, payload.get("centerId"))
        return self.set_checkin_location(record_id, payload.get("lat"), payload.get("lng"), payload.get("accuracy"))

    def _parse_instant(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return ensure_aware(value)
        return parse_iso_datetime(str(value), self._clock.timezone)
