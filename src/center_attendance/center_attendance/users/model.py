from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Note: plain data object, no DB access code here.
    """

    user_id: int
    name: str
    email: str
    password_hash: str
    role: Role


@dataclass(frozen=True)
class Student:
    """Domain entity: student profile owned 1:1 by a user with role student."""

    student_id: int
    user_id: int
    center_id: int
    grade: Optional[str] = None
    roll_number: Optional[str] = None
    student_phone: Optional[str] = None
    parent_phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "studentId": self.student_id,
            "userId": self.user_id,
            "centerId": self.center_id,
            "grade": self.grade,
            "rollNumber": self.roll_number,
            "studentPhone": self.student_phone,
            "parentPhone": self.parent_phone,
        }


@dataclass(frozen=True)
class StudentProfile:
    """Read-model joining student, user and center (admin listings)."""

    student_id: int
    user_id: int
    name: str
    email: str
    center_id: int
    center_name: Optional[str]
    center_code: Optional[str]
    grade: Optional[str]
    roll_number: Optional[str]

    def to_dict(self) -> dict:
        return {
            "studentId": self.student_id,
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "centerId": self.center_id,
            "centerName": self.center_name,
            "centerCode": self.center_code,
            "grade": self.grade,
            "rollNumber": self.roll_number,
        }
