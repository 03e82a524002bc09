from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Student, StudentProfile, User
from .repository import StudentRepository, UserRepository


def _to_user(r: dict) -> User:
    return User(
        user_id=int(r["user_id"]),
        name=r["name"],
        email=r["email"],
        password_hash=r["password_hash"],
        role=Role(r["role"]),
    )


def _to_student(r: dict) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        user_id=int(r["user_id"]),
        center_id=int(r["center_id"]),
        grade=r.get("grade"),
        roll_number=r.get("roll_number"),
        student_phone=r.get("student_phone"),
        parent_phone=r.get("parent_phone"),
    )


_STUDENT_COLUMNS = "student_id, user_id, center_id, grade, roll_number, student_phone, parent_phone"


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT user_id, name, email, password_hash, role FROM users WHERE user_id=%s",
                (int(user_id),),
            )
            r = fetchone(cur)
            return _to_user(r) if r else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT user_id, name, email, password_hash, role FROM users WHERE email=%s",
                (email,),
            )
            r = fetchone(cur)
            return _to_user(r) if r else None

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO users(name, email, password_hash, role) VALUES(%s,%s,%s,%s)",
                (name, email, password_hash, role.value),
            )
            return int(cur.lastrowid)


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_STUDENT_COLUMNS} FROM students WHERE student_id=%s", (int(student_id),))
            r = fetchone(cur)
            return _to_student(r) if r else None

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_STUDENT_COLUMNS} FROM students WHERE user_id=%s", (int(user_id),))
            r = fetchone(cur)
            return _to_student(r) if r else None

    def create_student(
        self,
        *,
        user_id: int,
        center_id: int,
        grade: Optional[str] = None,
        roll_number: Optional[str] = None,
        student_phone: Optional[str] = None,
        parent_phone: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO students(user_id, center_id, grade, roll_number, student_phone, parent_phone)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(user_id), int(center_id), grade, roll_number, student_phone, parent_phone),
            )
            return int(cur.lastrowid)

    def delete_with_user(self, student_id: int) -> bool:
        """Delete the student row and its student-role login in one transaction."""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT user_id FROM students WHERE student_id=%s FOR UPDATE", (int(student_id),))
            r = fetchone(cur)
            if not r:
                return False
            cur.execute("DELETE FROM students WHERE student_id=%s", (int(student_id),))
            cur.execute("DELETE FROM users WHERE user_id=%s AND role=%s", (int(r["user_id"]), Role.STUDENT.value))
            return True

    def count_all(self) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS total FROM students")
            r = fetchone(cur)
            return int(r["total"]) if r else 0

    def list_profiles(self, *, center_id: Optional[int] = None) -> Sequence[StudentProfile]:
        where = ""
        params: tuple = ()
        if center_id is not None:
            where = "WHERE s.center_id=%s"
            params = (int(center_id),)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT s.student_id, s.user_id, u.name, u.email, s.center_id,
                       c.name AS center_name, c.code AS center_code, s.grade, s.roll_number
                FROM students s
                JOIN users u ON u.user_id = s.user_id
                LEFT JOIN centers c ON c.center_id = s.center_id
                {where}
                ORDER BY u.name ASC
                """,
                params,
            )
            return [
                StudentProfile(
                    student_id=int(r["student_id"]),
                    user_id=int(r["user_id"]),
                    name=r["name"],
                    email=r["email"],
                    center_id=int(r["center_id"]),
                    center_name=r.get("center_name"),
                    center_code=r.get("center_code"),
                    grade=r.get("grade"),
                    roll_number=r.get("roll_number"),
                )
                for r in fetchall(cur)
            ]
