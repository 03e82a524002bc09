from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization."""

    ADMIN = "admin"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Statuses accepted at the edit boundary.

    Stored as a short string so older rows with other values still load.
    """

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class Flow(str, Enum):
    """Which admission policy handles a request."""

    GEOFENCE = "geofence"
    SCAN = "scan"


class Intent(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    TOGGLE = "toggle"


class AdmissionAction(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class EditAction(str, Enum):
    SET_STATUS = "set_status"
    FORCE_CHECKOUT = "force_checkout"
    REOPEN_SESSION = "reopen_session"
    SET_TIMES = "set_times"
    SET_CENTER = "set_center"
    SET_CHECKIN_LOCATION = "set_checkin_location"


class ErrorCode(str, Enum):
    GEOFENCE_NOT_CONFIGURED = "GEOFENCE_NOT_CONFIGURED"
    ALREADY_CHECKED_IN = "ALREADY_CHECKED_IN"
    NO_OPEN_SESSION = "NO_OPEN_SESSION"
    OUTSIDE_GEOFENCE = "OUTSIDE_GEOFENCE"
    TOO_SOON = "TOO_SOON"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    CENTER_NOT_FOUND = "CENTER_NOT_FOUND"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    CHECKOUT_BEFORE_CHECKIN = "CHECKOUT_BEFORE_CHECKIN"
    NO_CHANGES = "NO_CHANGES"
    INVALID_INPUT = "INVALID_INPUT"
    OPEN_SESSION_EXISTS = "OPEN_SESSION_EXISTS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    FORBIDDEN = "FORBIDDEN"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
