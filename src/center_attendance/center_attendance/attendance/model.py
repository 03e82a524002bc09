from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from typing import Optional

from ..core.enums import AdmissionAction, AttendanceStatus

CHECKOUT_FIELDS = (
    "check_out_at",
    "check_out_lat",
    "check_out_lng",
    "check_out_accuracy",
    "distance_from_center_checkout_meters",
)


@dataclass(frozen=True)
class NewAttendanceRecord:
    """Row to insert; the store assigns ``attendance_id``."""

    student_id: int
    center_id: int
    work_date: date
    check_in_at: datetime
    status: str = AttendanceStatus.PRESENT.value
    check_in_lat: Optional[float] = None
    check_in_lng: Optional[float] = None
    check_in_accuracy: Optional[float] = None
    distance_from_center_meters: Optional[float] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance session (check-in, optional check-out)."""

    attendance_id: int
    student_id: int
    center_id: int
    work_date: date
    check_in_at: datetime
    check_out_at: Optional[datetime] = None
    status: str = AttendanceStatus.PRESENT.value
    check_in_lat: Optional[float] = None
    check_in_lng: Optional[float] = None
    check_in_accuracy: Optional[float] = None
    distance_from_center_meters: Optional[float] = None
    check_out_lat: Optional[float] = None
    check_out_lng: Optional[float] = None
    check_out_accuracy: Optional[float] = None
    distance_from_center_checkout_meters: Optional[float] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.check_out_at is None

    @property
    def last_action_at(self) -> datetime:
        return self.check_out_at or self.check_in_at

    @classmethod
    def from_new(cls, attendance_id: int, new: NewAttendanceRecord) -> "AttendanceRecord":
        return cls(attendance_id=attendance_id, **asdict(new))

    def to_dict(self) -> dict:
        out = asdict(self)
        out["work_date"] = self.work_date.isoformat()
        for key in ("check_in_at", "check_out_at"):
            out[key] = out[key].isoformat() if out[key] else None
        out["is_open"] = self.is_open
        return out


UPDATABLE_FIELDS = frozenset(f.name for f in fields(AttendanceRecord)) - {"attendance_id", "student_id"}


@dataclass(frozen=True)
class ClientAudit:
    """Device / network metadata captured with an admission request."""

    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AdmissionResult:
    action: AdmissionAction
    record: AttendanceRecord
    distance_meters: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "action": self.action.value,
            "record": self.record.to_dict(),
            "distanceMeters": self.distance_meters,
        }


@dataclass(frozen=True)
class AttendanceReportRow:
    """Read-model for admin listings (joined for display)."""

    attendance_id: int
    student_id: int
    student_name: Optional[str]
    student_email: Optional[str]
    grade: Optional[str]
    roll_number: Optional[str]
    center_id: int
    center_name: Optional[str]
    center_code: Optional[str]
    check_in_at: datetime
    check_out_at: Optional[datetime]
    status: str
    check_in_lat: Optional[float] = None
    check_in_lng: Optional[float] = None
    check_out_lat: Optional[float] = None
    check_out_lng: Optional[float] = None
    distance_from_center_meters: Optional[float] = None
    distance_from_center_checkout_meters: Optional[float] = None

    def to_dict(self) -> dict:
        out = asdict(self)
        out["check_in_at"] = self.check_in_at.isoformat()
        out["check_out_at"] = self.check_out_at.isoformat() if self.check_out_at else None
        return out
