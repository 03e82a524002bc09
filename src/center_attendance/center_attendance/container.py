from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.editor import AttendanceEditor
from .attendance.factory import AdmissionPolicyFactory
from .attendance.locks import KeyedLocks
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .centers.mysql_center_repository import MySQLCenterRepository
from .centers.repository import CenterRepository
from .centers.service import CenterService
from .common.datetime_utils import TimeWindowProvider
from .core.constants import DEFAULT_MAX_SCAN_SESSIONS_PER_DAY, DEFAULT_SCAN_COOLDOWN_SECONDS, DEFAULT_TIMEZONE
from .database.connection import DBConfig, DatabaseConnection
from .reports.service import ReportService
from .users.mysql_user_repository import MySQLStudentRepository, MySQLUserRepository
from .users.repository import StudentRepository, UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    clock: TimeWindowProvider

    users_repo: UserRepository
    students_repo: StudentRepository
    centers_repo: CenterRepository
    attendance_repo: AttendanceRepository

    auth_service: AuthService
    user_service: UserService
    center_service: CenterService
    attendance_service: AttendanceService
    attendance_editor: AttendanceEditor
    report_service: ReportService


def assemble_container(
    *,
    users_repo: UserRepository,
    students_repo: StudentRepository,
    centers_repo: CenterRepository,
    attendance_repo: AttendanceRepository,
    timezone: str = DEFAULT_TIMEZONE,
    scan_cooldown_seconds: int = DEFAULT_SCAN_COOLDOWN_SECONDS,
    max_scan_sessions_per_day: int = DEFAULT_MAX_SCAN_SESSIONS_PER_DAY,
) -> Container:
    """Wire services over any repository implementations (MySQL or in-memory)."""

    clock = TimeWindowProvider(timezone)
    # Admission and admin edits serialize on the same (student, center, day) keys.
    locks = KeyedLocks()

    attendance_service = AttendanceService(
        attendance_repo,
        students_repo,
        centers_repo,
        policy_factory=AdmissionPolicyFactory(
            cooldown_seconds=scan_cooldown_seconds,
            max_sessions_per_day=max_scan_sessions_per_day,
        ),
        clock=clock,
        locks=locks,
    )

    return Container(
        clock=clock,
        users_repo=users_repo,
        students_repo=students_repo,
        centers_repo=centers_repo,
        attendance_repo=attendance_repo,
        auth_service=AuthService(users_repo, students_repo),
        user_service=UserService(users_repo, students_repo, centers_repo),
        center_service=CenterService(centers_repo),
        attendance_service=attendance_service,
        attendance_editor=AttendanceEditor(attendance_repo, centers_repo, clock=clock, locks=locks),
        report_service=ReportService(attendance_repo, students_repo, clock=clock),
    )


def build_container(*, db_config: dict, settings: Optional[object] = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return assemble_container(
        users_repo=MySQLUserRepository(conn),
        students_repo=MySQLStudentRepository(conn),
        centers_repo=MySQLCenterRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        timezone=str(getattr(settings, "TIMEZONE", DEFAULT_TIMEZONE)),
        scan_cooldown_seconds=int(getattr(settings, "SCAN_COOLDOWN_SECONDS", DEFAULT_SCAN_COOLDOWN_SECONDS)),
        max_scan_sessions_per_day=int(
            getattr(settings, "MAX_SCAN_SESSIONS_PER_DAY", DEFAULT_MAX_SCAN_SESSIONS_PER_DAY)
        ),
    )
