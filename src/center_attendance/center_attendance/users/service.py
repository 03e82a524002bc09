from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from ..centers.repository import CenterRepository
from ..common.validators import optional_text, require_int, require_min_length, require_non_empty
from ..core.enums import ErrorCode, Role
from ..core.exceptions import AuthenticationError, DomainError, NotFoundError, ValidationError
from .model import Student, User
from .repository import StudentRepository, UserRepository

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return require_non_empty(email, "email").lower()


@dataclass(frozen=True)
class SessionUser:
    """What the API returns after login (never the password hash)."""

    user_id: int
    name: str
    email: str
    role: Role
    student_id: Optional[int] = None
    center_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "studentId": self.student_id,
            "centerId": self.center_id,
        }


class AuthService:
    """Use case: authenticate a user (login form or per-request headers)."""

    def __init__(self, users: UserRepository, students: StudentRepository):
        self._users = users
        self._students = students

    @staticmethod
    def _password_ok(user: User, password: str) -> bool:
        try:
            return check_password_hash(user.password_hash, password)
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME'
            return False

    def _session_user(self, user: User) -> SessionUser:
        student = self._students.get_by_user_id(user.user_id) if user.role == Role.STUDENT else None
        return SessionUser(
            user_id=user.user_id,
            name=user.name,
            email=user.email,
            role=user.role,
            student_id=student.student_id if student else None,
            center_id=student.center_id if student else None,
        )

    def authenticate(self, email: str, password: str) -> SessionUser:
        if not email or not password:
            raise AuthenticationError("Missing credentials")
        user = self._users.get_by_email(str(email).strip().lower())
        if not user or not self._password_ok(user, password):
            raise AuthenticationError("Wrong email or password")
        return self._session_user(user)

    def authenticate_headers(self, raw_user_id: Optional[str], password: Optional[str]) -> SessionUser:
        if not raw_user_id or not password:
            raise AuthenticationError("Missing auth headers")
        try:
            user_id = int(raw_user_id)
        except ValueError:
            raise AuthenticationError("Invalid user id")

        user = self._users.get_by_id(user_id)
        if not user or not self._password_ok(user, password):
            raise AuthenticationError("Invalid credentials")
        return self._session_user(user)


@dataclass
class ImportSummary:
    created_users: int = 0
    created_students: int = 0
    skipped_existing: int = 0
    rows_processed: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "summary": {
                "createdUsers": self.created_users,
                "createdStudents": self.created_students,
                "skippedExisting": self.skipped_existing,
                "rowsProcessed": self.rows_processed,
                "rowsWithErrors": len(self.errors),
            },
            "errors": self.errors,
        }


class UserService:
    """Use case: manage users and student profiles."""

    REQUIRED_IMPORT_COLUMNS = ("name", "email", "password")

    def __init__(self, users: UserRepository, students: StudentRepository, centers: CenterRepository):
        self._users = users
        self._students = students
        self._centers = centers

    def get_student(self, student_id: int) -> Student:
        student = self._students.get_by_id(int(student_id))
        if not student:
            raise NotFoundError("Student not found", code=ErrorCode.STUDENT_NOT_FOUND, student_id=int(student_id))
        return student

    def require_student_for_user(self, user_id: int) -> Student:
        student = self._students.get_by_user_id(int(user_id))
        if not student:
            raise NotFoundError("Student not found", code=ErrorCode.STUDENT_NOT_FOUND, user_id=int(user_id))
        return student

    def list_students(self, *, center_id: Optional[int] = None):
        return self._students.list_profiles(center_id=center_id)

    def _create_user(self, *, name: str, email: str, password: str, role: Role) -> User:
        name = require_non_empty(name, "name")
        email = normalize_email(email)
        require_min_length(password, "password", 6)

        if self._users.get_by_email(email):
            raise ValidationError("User already exists", code=ErrorCode.USER_ALREADY_EXISTS, email=email)

        user_id = self._users.create_user(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
        )
        user = self._users.get_by_id(user_id)
        if not user:
            raise RuntimeError(f"user {user_id} missing right after insert")
        return user

    def create_student(
        self,
        *,
        name: str,
        email: str,
        password: str,
        center_id: Any,
        grade: Any = None,
        roll_number: Any = None,
        student_phone: Any = None,
        parent_phone: Any = None,
    ) -> tuple[User, Student]:
        cid = require_int(center_id, "center_id")
        if not self._centers.get_by_id(cid):
            raise NotFoundError("Center not found", code=ErrorCode.CENTER_NOT_FOUND, center_id=cid)

        user = self._create_user(name=name, email=email, password=password, role=Role.STUDENT)
        student_id = self._students.create_student(
            user_id=user.user_id,
            center_id=cid,
            grade=optional_text(grade),
            roll_number=optional_text(roll_number),
            student_phone=optional_text(student_phone),
            parent_phone=optional_text(parent_phone),
        )
        logger.info("student %s created for user %s at center %s", student_id, user.user_id, cid)
        return user, self.get_student(student_id)

    def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        center_id: Any = None,
        center_code: Any = None,
        grade: Any = None,
        roll_number: Any = None,
    ) -> tuple[User, Student]:
        """Public sign-up: always a student, attached to a center by id or code."""

        code = optional_text(center_code)
        if center_id in (None, "") and code:
            center = self._centers.get_by_code(code)
            if not center:
                raise NotFoundError("Center not found", code=ErrorCode.CENTER_NOT_FOUND, center_code=code)
            center_id = center.center_id

        return self.create_student(
            name=name,
            email=email,
            password=password,
            center_id=center_id,
            grade=grade,
            roll_number=roll_number,
        )

    def create_admin(self, *, name: str, email: str, password: str) -> User:
        return self._create_user(name=name, email=email, password=password, role=Role.ADMIN)

    def delete_student(self, student_id: int) -> None:
        student = self.get_student(student_id)
        if not self._students.delete_with_user(student.student_id):
            raise NotFoundError("Student not found", code=ErrorCode.STUDENT_NOT_FOUND, student_id=student.student_id)
        logger.info("student %s deleted", student.student_id)

    def import_students(self, csv_text: str) -> ImportSummary:
        """Bulk create users from CSV; existing emails are skipped, row errors collected."""

        reader = csv.DictReader(io.StringIO(csv_text or ""))
        header = [h.strip() for h in (reader.fieldnames or [])]
        for col in self.REQUIRED_IMPORT_COLUMNS:
            if col not in header:
                raise ValidationError(f"Missing required column: {col}", column=col)
        reader.fieldnames = header

        summary = ImportSummary()
        for line_no, raw in enumerate(reader, start=2):
            row = {k: (v or "").strip() for k, v in raw.items() if k}
            if not any(row.values()):
                continue
            summary.rows_processed += 1
            email = row.get("email", "").lower()

            if not row.get("name") or not email or not row.get("password"):
                summary.errors.append({"row": line_no, "email": email, "error": "missing_name_email_or_password"})
                continue
            if self._users.get_by_email(email):
                summary.skipped_existing += 1
                continue

            try:
                if row.get("role") == Role.ADMIN.value:
                    self.create_admin(name=row["name"], email=email, password=row["password"])
                    summary.created_users += 1
                    continue

                center_code = row.get("centerCode", "")
                if not center_code:
                    summary.errors.append({"row": line_no, "email": email, "error": "student_missing_centerCode"})
                    continue
                center = self._centers.get_by_code(center_code)
                if not center:
                    summary.errors.append(
                        {"row": line_no, "email": email, "centerCode": center_code, "error": "center_not_found"}
                    )
                    continue

                self.create_student(
                    name=row["name"],
                    email=email,
                    password=row["password"],
                    center_id=center.center_id,
                    grade=row.get("grade"),
                    roll_number=row.get("rollNumber"),
                    student_phone=row.get("studentPhone"),
                    parent_phone=row.get("parentPhone"),
                )
                summary.created_users += 1
                summary.created_students += 1
            except DomainError as e:
                summary.errors.append({"row": line_no, "email": email, "error": e.code.value, "message": str(e)})

        logger.info(
            "student import: %s users, %s students, %s skipped, %s errors",
            summary.created_users,
            summary.created_students,
            summary.skipped_existing,
            len(summary.errors),
        )
        return summary
