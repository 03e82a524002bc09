from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import pytest
from werkzeug.security import generate_password_hash

from src.center_attendance.center_attendance.attendance.model import (
    UPDATABLE_FIELDS,
    AttendanceRecord,
    AttendanceReportRow,
    NewAttendanceRecord,
)
from src.center_attendance.center_attendance.centers.model import Center
from src.center_attendance.center_attendance.container import Container, assemble_container
from src.center_attendance.center_attendance.core.enums import Role
from src.center_attendance.center_attendance.users.model import Student, StudentProfile, User

# Main center used across the suite (Srinagar), 100 m radius.
CENTER_LAT = 34.0837
CENTER_LNG = 74.7973


def fast_hash(password: str) -> str:
    return generate_password_hash(password, method="pbkdf2:sha256:1000")


class InMemoryCenters:
    def __init__(self, centers: Optional[list[Center]] = None):
        self.centers: dict[int, Center] = {c.center_id: c for c in centers or []}

    def add(self, center: Center) -> Center:
        self.centers[center.center_id] = center
        return center

    def get_by_id(self, center_id: int) -> Optional[Center]:
        return self.centers.get(center_id)

    def get_by_code(self, code: str) -> Optional[Center]:
        return next((c for c in self.centers.values() if c.code == code), None)

    def list_all(self):
        return sorted(self.centers.values(), key=lambda c: c.name)

    def update_location(self, center_id: int, *, lat: float, lng: float, radius_meters: float) -> bool:
        if center_id not in self.centers:
            return False
        self.centers[center_id] = replace(self.centers[center_id], lat=lat, lng=lng, radius_meters=radius_meters)
        return True


class InMemoryUsers:
    def __init__(self):
        self.users: dict[int, User] = {}
        self._id = 0

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> int:
        self._id += 1
        self.users[self._id] = User(user_id=self._id, name=name, email=email, password_hash=password_hash, role=role)
        return self._id


class InMemoryStudents:
    def __init__(self, users: InMemoryUsers, centers: InMemoryCenters):
        self.students: dict[int, Student] = {}
        self._users = users
        self._centers = centers
        self._id = 0

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self.students.get(student_id)

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        return next((s for s in self.students.values() if s.user_id == user_id), None)

    def create_student(self, *, user_id: int, center_id: int, grade=None, roll_number=None, student_phone=None, parent_phone=None) -> int:
        self._id += 1
        self.students[self._id] = Student(
            student_id=self._id,
            user_id=user_id,
            center_id=center_id,
            grade=grade,
            roll_number=roll_number,
            student_phone=student_phone,
            parent_phone=parent_phone,
        )
        return self._id

    def delete_with_user(self, student_id: int) -> bool:
        student = self.students.pop(student_id, None)
        if student is None:
            return False
        user = self._users.get_by_id(student.user_id)
        if user and user.role == Role.STUDENT:
            self._users.users.pop(user.user_id)
        return True

    def count_all(self) -> int:
        return len(self.students)

    def list_profiles(self, *, center_id: Optional[int] = None):
        out = []
        for s in self.students.values():
            if center_id is not None and s.center_id != center_id:
                continue
            user = self._users.get_by_id(s.user_id)
            center = self._centers.get_by_id(s.center_id)
            out.append(
                StudentProfile(
                    student_id=s.student_id,
                    user_id=s.user_id,
                    name=user.name if user else "",
                    email=user.email if user else "",
                    center_id=s.center_id,
                    center_name=center.name if center else None,
                    center_code=center.code if center else None,
                    grade=s.grade,
                    roll_number=s.roll_number,
                )
            )
        return sorted(out, key=lambda p: p.name)


class InMemoryAttendance:
    def __init__(self, students: Optional[InMemoryStudents] = None):
        self.records: dict[int, AttendanceRecord] = {}
        self._students = students
        self._id = 0

    def _day(self, student_id, center_id, day_start, day_end):
        items = [
            r
            for r in self.records.values()
            if r.student_id == student_id and r.center_id == center_id and day_start <= r.check_in_at < day_end
        ]
        return sorted(items, key=lambda r: (r.check_in_at, r.attendance_id), reverse=True)

    def find_open_session(self, student_id, center_id, day_start, day_end):
        return next((r for r in self._day(student_id, center_id, day_start, day_end) if r.is_open), None)

    def count_sessions(self, student_id, center_id, day_start, day_end) -> int:
        return len(self._day(student_id, center_id, day_start, day_end))

    def find_most_recent(self, student_id, center_id, day_start, day_end):
        items = self._day(student_id, center_id, day_start, day_end)
        return items[0] if items else None

    def insert(self, record: NewAttendanceRecord) -> AttendanceRecord:
        self._id += 1
        stored = AttendanceRecord.from_new(self._id, record)
        self.records[self._id] = stored
        return stored

    def update_by_id(self, attendance_id: int, changes: Mapping[str, Any]) -> bool:
        unknown = set(changes) - UPDATABLE_FIELDS
        assert not unknown, f"not updatable: {unknown}"
        if attendance_id not in self.records:
            return False
        self.records[attendance_id] = replace(self.records[attendance_id], **changes)
        return True

    def find_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self.records.get(attendance_id)

    def find_range(self, student_id, start, end):
        items = [r for r in self.records.values() if r.student_id == student_id and start <= r.check_in_at < end]
        return sorted(items, key=lambda r: (r.check_in_at, r.attendance_id), reverse=True)

    def delete_by_id(self, attendance_id: int) -> bool:
        return self.records.pop(attendance_id, None) is not None

    def get_recent_for_student(self, student_id: int, limit: int):
        items = [r for r in self.records.values() if r.student_id == student_id]
        items.sort(key=lambda r: r.check_in_at, reverse=True)
        return items[:limit]

    def count_students_present(self, start, end) -> int:
        return len(
            {r.student_id for r in self.records.values() if r.status == "present" and start <= r.check_in_at < end}
        )

    def get_report_rows(self, *, start, end, center_id=None, status=None, grade=None, limit=200):
        rows = []
        for r in sorted(self.records.values(), key=lambda r: r.check_in_at, reverse=True):
            if not (start <= r.check_in_at < end):
                continue
            if center_id is not None and r.center_id != center_id:
                continue
            if status is not None and r.status != status:
                continue
            student = self._students.get_by_id(r.student_id) if self._students else None
            if grade is not None and (student is None or student.grade != grade):
                continue
            rows.append(
                AttendanceReportRow(
                    attendance_id=r.attendance_id,
                    student_id=r.student_id,
                    student_name=None,
                    student_email=None,
                    grade=student.grade if student else None,
                    roll_number=student.roll_number if student else None,
                    center_id=r.center_id,
                    center_name=None,
                    center_code=None,
                    check_in_at=r.check_in_at,
                    check_out_at=r.check_out_at,
                    status=r.status,
                )
            )
        return rows[:limit]


@dataclass
class World:
    """In-memory repositories plus the ids of the seeded center, admin and student."""

    container: Container
    centers: InMemoryCenters
    users: InMemoryUsers
    students: InMemoryStudents
    attendance: InMemoryAttendance
    center: Center
    admin: User
    student: Student
    student_user: User


def build_world(*, cooldown_seconds: int = 60, max_sessions_per_day: int = 2, timezone_name: str = "Asia/Kolkata") -> World:
    center = Center(center_id=1, name="Main Center", code="MAIN", lat=CENTER_LAT, lng=CENTER_LNG, radius_meters=100.0)
    centers = InMemoryCenters([center])
    users = InMemoryUsers()
    students = InMemoryStudents(users, centers)
    attendance = InMemoryAttendance(students)

    admin_id = users.create_user(name="Admin", email="admin@center.local", password_hash=fast_hash("admin123"), role=Role.ADMIN)
    student_user_id = users.create_user(
        name="Asha", email="asha@center.local", password_hash=fast_hash("student123"), role=Role.STUDENT
    )
    student_id = students.create_student(user_id=student_user_id, center_id=center.center_id, grade="10", roll_number="7")

    container = assemble_container(
        users_repo=users,
        students_repo=students,
        centers_repo=centers,
        attendance_repo=attendance,
        timezone=timezone_name,
        scan_cooldown_seconds=cooldown_seconds,
        max_scan_sessions_per_day=max_sessions_per_day,
    )
    return World(
        container=container,
        centers=centers,
        users=users,
        students=students,
        attendance=attendance,
        center=center,
        admin=users.get_by_id(admin_id),
        student=students.get_by_id(student_id),
        student_user=users.get_by_id(student_user_id),
    )


@pytest.fixture
def fixed_now() -> datetime:
    # 09:30 IST on 10 March 2026
    return datetime(2026, 3, 10, 4, 0, tzinfo=timezone.utc)


@pytest.fixture
def world() -> World:
    return build_world()


@pytest.fixture
def make_world():
    return build_world
