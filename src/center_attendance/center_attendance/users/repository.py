from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import Role
from .model import Student, StudentProfile, User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): services depend on this interface, never on a concrete DB.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> int:
        raise NotImplementedError


class StudentRepository(Protocol):
    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        raise NotImplementedError

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
        raise NotImplementedError

    def delete_with_user(self, student_id: int) -> bool:
        raise NotImplementedError

    def count_all(self) -> int:
        raise NotImplementedError

    def list_profiles(self, *, center_id: Optional[int] = None) -> Sequence[StudentProfile]:
        raise NotImplementedError
